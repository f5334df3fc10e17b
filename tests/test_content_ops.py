import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from app.stores import MemoryRecordStore
from content_ops import (
    create_content,
    destroy_all,
    destroy_content,
    get_tag,
    load_for_edit,
    recalculate_tag_content_counts,
    update_content,
)
from hatch.errors import RecordNotFound, ValidationError
from list_query import make_query


class ContentOpsTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.contents = MemoryRecordStore("Content")
        self.groups = MemoryRecordStore("Group")
        self.group = self.groups.create({"name": "Kitchen", "url": "kitchen.example.com", "tags": []})
        self.other = self.groups.create({"name": "Other", "url": "other.example.com", "tags": []})

    def _post(self, group=None, **fields) -> dict:
        data = {"groupId": (group or self.group)["id"], "title": "Post", "text": "Body", "createdAt": "2013-03-04T09:15:00Z"}
        data.update(fields)
        return self.contents.create(data)


class TestCreate(ContentOpsTestCase):
    def test_create_sets_ownership_and_tags(self) -> None:
        post = create_content(self.contents, self.groups, self.group, "u1", {"title": "Hi", "text": "x", "tags": ["news", "food"]})
        self.assertEqual(post["groupId"], self.group["id"])
        self.assertEqual(post["authorId"], "u1")
        self.assertEqual(post["score"], 0)
        self.assertEqual(post["tagString"], "news, food")
        self.assertIn("updatedAt", post)
        group = self.groups.find(self.group["id"])
        self.assertEqual({t["name"]: t["contentCount"] for t in group["tags"]}, {"news": 1, "food": 1})

    def test_create_requires_title(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            create_content(self.contents, self.groups, self.group, "u1", {"text": "x"})
        self.assertEqual(ctx.exception.errors[0]["field"], "title")
        self.assertEqual(self.contents.count(), 0)


class TestUpdate(ContentOpsTestCase):
    def test_requires_publish_date(self) -> None:
        post = self._post()
        for value in (None, "", "not a date"):
            with self.assertRaises(ValidationError) as ctx:
                update_content(self.contents, self.groups, self.group, {"id": post["id"], "title": "t", "text": "x", "createdAt": value})
            self.assertEqual(ctx.exception.message, "Please enter a valid publish date")

    def test_requires_title_and_text(self) -> None:
        post = self._post()
        with self.assertRaises(ValidationError) as ctx:
            update_content(self.contents, self.groups, self.group, {"id": post["id"], "title": "t", "createdAt": "4-Mar-2013 09:15:00"})
        self.assertEqual(ctx.exception.message, "Please enter a title and some text")

    def test_tag_merge_keeps_existing_scores(self) -> None:
        news = get_tag(self.group, "news")
        self.groups.save(self.group)
        post = self._post(tags=[{"tagId": news["id"], "name": "news", "createdAt": "2012-01-01T00:00:00Z", "score": 7}])
        updated = update_content(
            self.contents,
            self.groups,
            self.group,
            {"id": post["id"], "title": "New", "text": "Body", "createdAt": "4-Mar-2013 09:15:00", "tags": ["news", "travel"]},
        )
        tags = {t["name"]: t for t in updated["tags"]}
        self.assertEqual(tags["news"]["score"], 7)
        self.assertEqual(tags["news"]["createdAt"], "2012-01-01T00:00:00Z")
        self.assertEqual(tags["travel"]["score"], 0)
        self.assertEqual(updated["tagString"], "news, travel")
        self.assertEqual(updated["createdAt"], "2013-03-04T09:15:00Z")
        self.assertEqual(self.contents.find(post["id"])["title"], "New")
        group = self.groups.find(self.group["id"])
        self.assertEqual({t["name"]: t["contentCount"] for t in group["tags"]}, {"news": 1, "travel": 1})

    def test_cannot_move_post_to_another_group(self) -> None:
        post = self._post()
        update_content(
            self.contents,
            self.groups,
            self.group,
            {"id": post["id"], "groupId": self.other["id"], "title": "t", "text": "x", "createdAt": "2013-03-04T09:15:00Z"},
        )
        self.assertEqual(self.contents.find(post["id"])["groupId"], self.group["id"])

    def test_post_from_other_group_not_found(self) -> None:
        post = self._post(group=self.other)
        with self.assertRaises(RecordNotFound):
            update_content(self.contents, self.groups, self.group, {"id": post["id"], "title": "t", "text": "x", "createdAt": "4-Mar-2013 09:15:00"})


class TestEditAndDestroy(ContentOpsTestCase):
    def test_edit_formats_publish_date(self) -> None:
        post = self._post()
        loaded = load_for_edit(self.contents, self.group, str(post["id"]))
        self.assertEqual(loaded["createdAt"], "4-Mar-2013 09:15:00")
        self.assertEqual(load_for_edit(self.contents, self.group), {})

    def test_destroy_recalculates_counts(self) -> None:
        tag = get_tag(self.group, "news")
        self.groups.save(self.group)
        post = self._post(tags=[{"tagId": tag["id"], "name": "news"}])
        recalculate_tag_content_counts(self.groups, self.contents, self.group)
        self.assertEqual(self.groups.find(self.group["id"])["tags"][0]["contentCount"], 1)
        destroy_content(self.contents, self.groups, self.group, post["id"])
        self.assertIsNone(self.contents.find(post["id"]))
        self.assertEqual(self.groups.find(self.group["id"])["tags"][0]["contentCount"], 0)

    def test_destroy_missing(self) -> None:
        with self.assertRaises(RecordNotFound):
            destroy_content(self.contents, self.groups, self.group, 404)


class TestDestroyAll(ContentOpsTestCase):
    def test_all_except_unselected(self) -> None:
        ids = [self._post(title=f"p{i}")["id"] for i in range(6)]
        foreign = self._post(group=self.other)
        keep = ids[4]
        count = destroy_all(self.contents, self.groups, self.group, {"selectedContent": ["all"], "unselectedContent": [keep]}, make_query({}))
        self.assertEqual(count, 5)
        self.assertEqual([r["id"] for r in self.contents.all(where={"groupId": self.group["id"]})[0]], [keep])
        self.assertIsNotNone(self.contents.find(foreign["id"]))

    def test_all_respects_filter(self) -> None:
        self._post(type="news")
        photo = self._post(type="photo")
        count = destroy_all(self.contents, self.groups, self.group, {"selectedContent": ["all"]}, make_query({"filter": "news"}))
        self.assertEqual(count, 1)
        self.assertIsNotNone(self.contents.find(photo["id"]))

    def test_missing_ids_are_not_counted(self) -> None:
        first = self._post()
        second = self._post()
        foreign = self._post(group=self.other)
        count = destroy_all(
            self.contents,
            self.groups,
            self.group,
            {"selectedContent": [first["id"], str(second["id"]), 999, foreign["id"]]},
            make_query({}),
        )
        self.assertEqual(count, 2)
        self.assertIsNotNone(self.contents.find(foreign["id"]))

    def test_single_id_without_list(self) -> None:
        ids = [self._post(title=f"p{i}")["id"] for i in range(15)]
        target = ids[11]
        count = destroy_all(self.contents, self.groups, self.group, {"selectedContent": str(target)}, make_query({}))
        self.assertEqual(count, 1)
        self.assertIsNone(self.contents.find(target))
        self.assertEqual(self.contents.count({"groupId": self.group["id"]}), 14)

    def test_all_without_list(self) -> None:
        ids = [self._post(title=f"p{i}")["id"] for i in range(3)]
        count = destroy_all(
            self.contents,
            self.groups,
            self.group,
            {"selectedContent": "all", "unselectedContent": ids[0]},
            make_query({}),
        )
        self.assertEqual(count, 2)
        self.assertEqual([r["id"] for r in self.contents.all(where={"groupId": self.group["id"]})[0]], [ids[0]])

    def test_empty_selection(self) -> None:
        self._post()
        self.assertEqual(destroy_all(self.contents, self.groups, self.group, {}, make_query({})), 0)
        self.assertEqual(self.contents.count(), 1)


if __name__ == "__main__":
    unittest.main()
