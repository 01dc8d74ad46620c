import unittest

from sqlalchemy import text

from gateway.db import (
    AttachmentRecord,
    AttachmentRow,
    CommentRecord,
    DataStoreError,
    PostgresDbClient,
)

PUBLIC_VIEW_DDL = """
CREATE VIEW comments_public AS
SELECT id, requirement_id, content, parent_id, attachments_count,
       substr(author_external_id, 1, 4) || '***' AS user_id_masked,
       created_at
FROM comments
"""


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    The public view is created here because the real one belongs to the data store.
    """

    @classmethod
    def setUpClass(cls):
        cls.db = PostgresDbClient("sqlite+pysqlite:///:memory:", create_schema=True)
        with cls.db.engine.begin() as conn:
            conn.execute(text(PUBLIC_VIEW_DDL))

    def _comment(self, **overrides):
        values = dict(
            requirement_id="req-1",
            content="hello",
            author_external_id="user-123",
            author_email="user@example.com",
        )
        values.update(overrides)
        return CommentRecord(**values)

    def test_insert_and_read_public_projection(self):
        stored = self.db.insert_comment(self._comment(attachments_count=1))
        projection = self.db.get_public_comment(stored.id)
        self.assertIsNotNone(projection)
        self.assertEqual(projection["id"], stored.id)
        self.assertEqual(projection["content"], "hello")
        self.assertEqual(projection["attachments_count"], 1)
        self.assertEqual(projection["user_id_masked"], "user***")
        self.assertNotIn("author_email", projection)

    def test_missing_projection(self):
        self.assertIsNone(self.db.get_public_comment("does-not-exist"))

    def test_insert_attachment(self):
        stored = self.db.insert_comment(self._comment())
        self.db.insert_attachment(
            AttachmentRecord(
                comment_id=stored.id,
                file_path="req-1/x_a.png",
                file_name="a.png",
                mime_type="image/png",
                size=42,
            )
        )
        with self.db.Session() as session:
            rows = session.query(AttachmentRow).filter_by(comment_id=stored.id).all()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].file_path, "req-1/x_a.png")

    def test_duplicate_comment_raises_data_store_error(self):
        stored = self.db.insert_comment(self._comment())
        with self.assertRaises(DataStoreError):
            self.db.insert_comment(self._comment(id=stored.id))

    def test_lookup_and_delete_scoped_to_author(self):
        stored = self.db.insert_comment(self._comment(author_external_id="owner"))
        self.assertIsNone(self.db.get_comment_for_author(stored.id, "someone"))

        self.db.delete_comment(stored.id, "someone")
        self.assertIsNotNone(self.db.get_comment_for_author(stored.id, "owner"))

        self.db.delete_comment(stored.id, "owner")
        self.assertIsNone(self.db.get_comment_for_author(stored.id, "owner"))


if __name__ == "__main__":
    unittest.main()
