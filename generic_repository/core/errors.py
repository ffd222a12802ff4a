from __future__ import annotations


class RepositoryError(Exception):
    pass


class InvalidFilterError(RepositoryError, ValueError):
    def __init__(self, field: str, detail: str):
        self.field = field
        self.detail = detail
        super().__init__(f'Invalid criterion for field "{field}": {detail}')


class CountError(RepositoryError, ValueError):
    pass
