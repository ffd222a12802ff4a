import unittest
import uuid
from datetime import datetime, timedelta, timezone

from generic_repository.core.errors import CountError
from generic_repository.core.result import Outcome
from generic_repository.models.document import DocumentEntity
from generic_repository.repositories.mongo import MongoRepository
from tests.mongo_base import AsyncDatabase, mock_database, naive


class _Project(DocumentEntity):
    name: str
    status: str = "a"
    owner: str | None = None
    priority: int = 0
    reviewer_id: uuid.UUID | None = None


class _StepClock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


class MongoRepositoryTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.database = mock_database()
        self.clock = _StepClock()
        self.repo = MongoRepository.for_database(AsyncDatabase(self.database), _Project, clock=self.clock)

    async def _add(self, name, status="a", **fields):
        project = _Project.new(clock=self.clock, name=name, status=status, **fields)
        ok, message = await self.repo.add_item(project)
        self.assertTrue(ok, message)
        return project

    async def _raw_document(self, project_id):
        return self.database["_project"].find_one({"_id": str(project_id)})

    async def test_add_then_get_by_id(self):
        project = await self._add("alpha", owner="ann")
        item, ok, message = await self.repo.get_by_id(project.id)
        self.assertTrue(ok, message)
        self.assertEqual(item.id, project.id)
        self.assertEqual(item.owner, "ann")
        self.assertFalse(item.is_deleted)

    async def test_get_by_id_returns_the_stored_entity(self):
        project = _Project.new(
            clock=lambda: datetime(2026, 1, 1, 12, 0, 0, 123456, tzinfo=timezone.utc),
            name="alpha",
            owner="ann",
        )
        await self.repo.add_item(project)
        item, ok, message = await self.repo.get_by_id(project.id)
        self.assertTrue(ok, message)
        self.assertEqual(item, project)

    async def test_uuid_reference_field_is_stored_filtered_and_loaded(self):
        reviewer = uuid.uuid4()
        project = await self._add("alpha", reviewer_id=reviewer)
        await self._add("beta", reviewer_id=uuid.uuid4())
        self.assertEqual((await self._raw_document(project.id))["reviewer_id"], str(reviewer))

        items, ok, message = await self.repo.get_paging({"reviewer_id": str(reviewer)})
        self.assertTrue(ok, message)
        self.assertEqual([p.id for p in items], [project.id])

        item, _, _ = await self.repo.get_by_id(project.id)
        self.assertEqual(item.reviewer_id, reviewer)

    async def test_documents_store_string_ids(self):
        project = await self._add("alpha")
        document = await self._raw_document(project.id)
        self.assertEqual(document["_id"], str(project.id))
        self.assertNotIn("id", document)

    async def test_add_null_item_is_rejected(self):
        self.assertEqual(tuple(await self.repo.add_item(None)), (False, "Item is null"))
        self.assertEqual(self.database["_project"].count_documents({}), 0)

    async def test_add_many(self):
        ok, _ = await self.repo.add_many_items([_Project.new(name="a1"), _Project.new(name="a2")])
        self.assertTrue(ok)
        self.assertEqual(await self.repo.count_items({}), 2)
        self.assertEqual(tuple(await self.repo.add_many_items([])), (False, "Items list is null or empty"))

    async def test_bad_ids_fail_fast(self):
        self.assertEqual((await self.repo.get_by_id(None)).message, "Id is null")
        self.assertEqual((await self.repo.remove_item("nope")).message, "Id is invalid")

    async def test_soft_remove_hides_record_but_keeps_document(self):
        project = await self._add("alpha")
        ok, message = await self.repo.soft_remove_item(project.id)
        self.assertTrue(ok, message)

        self.assertTrue((await self.repo.get_by_id(project.id)).is_not_found)

        document = await self._raw_document(project.id)
        self.assertIsNotNone(document)
        self.assertTrue(document["is_deleted"])
        self.assertIsNotNone(document["deleted_at"])

        again = await self.repo.soft_remove_item(project.id)
        self.assertEqual(again.outcome, Outcome.NOT_FOUND)

    async def test_remove_deletes_document(self):
        project = await self._add("alpha")
        ok, _ = await self.repo.remove_item(project.id)
        self.assertTrue(ok)
        self.assertTrue((await self.repo.get_by_id(project.id)).is_not_found)
        self.assertIsNone(await self._raw_document(project.id))
        self.assertEqual((await self.repo.remove_item(project.id)).outcome, Outcome.NOT_FOUND)

    async def test_update_keeps_identity_and_creation_time(self):
        project = await self._add("alpha")
        before = await self._raw_document(project.id)

        ok, message = await self.repo.update_item(project.id, _Project(name="renamed", status="b"))
        self.assertTrue(ok, message)

        after = await self._raw_document(project.id)
        self.assertEqual(after["name"], "renamed")
        self.assertEqual(after["status"], "b")
        self.assertEqual(naive(after["created_at"]), naive(before["created_at"]))
        self.assertGreater(naive(after["updated_at"]), naive(before["updated_at"]))

    async def test_update_missing_is_not_found(self):
        result = await self.repo.update_item(uuid.uuid4(), _Project(name="x"))
        self.assertEqual(result.outcome, Outcome.NOT_FOUND)

    async def test_paging_second_page_of_matching_records(self):
        for n in range(12):
            await self._add(f"p{n}", status="b" if n == 5 else "a")

        items, ok, message = await self.repo.get_paging({"status": "a"}, page_size=5, skip=2)
        self.assertTrue(ok, message)
        self.assertEqual([p.name for p in items], ["p6", "p7", "p8", "p9", "p10"])
        self.assertEqual(await self.repo.count({"status": "a"}, 5), 3)

    async def test_paging_sort_marker_is_descending(self):
        for n, priority in enumerate([2, 9, 5]):
            await self._add(f"p{n}", priority=priority)
        items, _, _ = await self.repo.get_paging({}, sort_field="!priority")
        self.assertEqual([p.priority for p in items], [9, 5, 2])
        items, _, _ = await self.repo.get_paging({}, sort_field="priority")
        self.assertEqual([p.priority for p in items], [2, 5, 9])

    async def test_negation_includes_missing_values(self):
        await self._add("one", owner="x")
        await self._add("two", owner="y")
        await self._add("three")
        items, _, _ = await self.repo.get_paging({"owner": "!x"}, page_size=10)
        self.assertEqual([p.name for p in items], ["two", "three"])

    async def test_multi_value_criterion_is_any_of(self):
        await self._add("one", owner="ann")
        await self._add("two", owner="bob")
        await self._add("three", owner="carl")
        items, _, _ = await self.repo.get_paging({"owner": "ann,bob"})
        self.assertEqual([p.name for p in items], ["one", "two"])

    async def test_integer_criterion(self):
        await self._add("one", priority=3)
        await self._add("two", priority=4)
        items, _, _ = await self.repo.get_paging({"priority": "4"})
        self.assertEqual([p.name for p in items], ["two"])

    async def test_soft_deleted_records_are_not_counted(self):
        first = await self._add("one")
        await self._add("two")
        await self.repo.soft_remove_item(first.id)
        self.assertEqual(await self.repo.count_items({}), 1)
        self.assertEqual(await self.repo.count({}), 1)

    async def test_paging_without_matches_is_not_found(self):
        await self._add("alpha")
        self.assertTrue((await self.repo.get_paging({"status": "zzz"})).is_not_found)

    async def test_paging_rejects_bad_input(self):
        self.assertEqual((await self.repo.get_paging({"nope": "1"})).outcome, Outcome.INVALID)
        self.assertEqual((await self.repo.get_paging({}, include="lookup")).outcome, Outcome.INVALID)

    async def test_get_by_filter_appends_aggregation_stages(self):
        await self._add("one", priority=1)
        await self._add("two", priority=7)
        items, ok, message = await self.repo.get_by_filter(
            {"priority": {"$gt": 0}},
            [{"$sort": {"priority": -1}}, {"$addFields": {"source": "archive"}}],
        )
        self.assertTrue(ok, message)
        self.assertEqual([p.name for p in items], ["two", "one"])
        self.assertEqual(items[0].source, "archive")

    async def test_get_by_filter_hides_deleted_unless_asked(self):
        project = await self._add("one")
        await self.repo.soft_remove_item(project.id)
        self.assertTrue((await self.repo.get_by_filter({"name": "one"})).is_not_found)
        items, ok, _ = await self.repo.get_by_filter({"name": "one"}, include_deleted=True)
        self.assertTrue(ok)
        self.assertTrue(items[0].is_deleted)

    async def test_count_raises_on_failure(self):
        with self.assertRaises(CountError):
            await self.repo.count({"nope": "1"})

    def test_capabilities(self):
        self.assertTrue(MongoRepository.capabilities.supports_regex)
        self.assertFalse(MongoRepository.capabilities.supports_include)
        self.assertTrue(MongoRepository.capabilities.supports_aggregation)


if __name__ == "__main__":
    unittest.main()
