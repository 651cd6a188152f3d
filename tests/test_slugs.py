import re
import unittest
from unittest.mock import MagicMock, patch

from sqlalchemy.exc import OperationalError

from schema_probe import SchemaFeatures
from services import slugs

SLUG_PATTERN = re.compile(r"^[a-z0-9]{8}$")


class RandomSlugTests(unittest.TestCase):
    def test_random_slug_is_eight_lowercase_alphanumerics(self):
        for _ in range(200):
            self.assertRegex(slugs.generate_random_slug(), SLUG_PATTERN)

    def test_fallback_slug_is_base36_timestamp(self):
        self.assertEqual(slugs.fallback_slug(now_ms=36), "dept-10")
        self.assertEqual(slugs.fallback_slug(now_ms=35), "dept-z")
        self.assertTrue(slugs.fallback_slug().startswith("dept-"))


class UniqueSlugTests(unittest.TestCase):
    def _db_with_counts(self, counts):
        db = MagicMock()
        db.execute.return_value.scalar.side_effect = counts
        return db

    def test_retries_until_slug_is_free(self):
        db = self._db_with_counts([1, 1, 0])
        features = SchemaFeatures(department_slug=True)

        with patch.object(slugs, "generate_random_slug", side_effect=["taken001", "taken002", "free0003"]):
            slug = slugs.generate_unique_slug(db, features)

        self.assertEqual(slug, "free0003")
        self.assertEqual(db.execute.call_count, 3)

    def test_falls_back_after_ten_collisions(self):
        db = self._db_with_counts([1] * slugs.MAX_SLUG_ATTEMPTS)
        features = SchemaFeatures(department_slug=True)

        slug = slugs.generate_unique_slug(db, features)

        self.assertTrue(slug.startswith("dept-"))
        self.assertEqual(db.execute.call_count, slugs.MAX_SLUG_ATTEMPTS)

    def test_failed_check_counts_as_collision(self):
        db = MagicMock()
        db.execute.side_effect = OperationalError("SELECT", {}, Exception("gone"))
        features = SchemaFeatures(department_slug=True)

        self.assertFalse(slugs.is_slug_unique(db, features, "abcdefgh"))

    def test_without_slug_column_nothing_is_queried(self):
        db = MagicMock()

        slug = slugs.generate_unique_slug(db, SchemaFeatures(department_slug=False))

        self.assertRegex(slug, SLUG_PATTERN)
        db.execute.assert_not_called()


if __name__ == "__main__":
    unittest.main()
