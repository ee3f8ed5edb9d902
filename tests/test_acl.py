import unittest

from pydantic import ValidationError

from github_metrics.infrastructure.acl import GitHubTranslator


class TestGitHubTranslator(unittest.TestCase):
    def test_to_domain_keeps_counts_and_language(self) -> None:
        raw_repo = {
            "id": 1296269,
            "name": "Hello-World",
            "stargazers_count": 80,
            "forks_count": 9,
            "language": "Python",
        }

        record = GitHubTranslator.to_domain(raw_repo)

        self.assertEqual(record.stargazers_count, 80)
        self.assertEqual(record.forks_count, 9)
        self.assertEqual(record.language, "Python")

    def test_to_domain_defaults_missing_fields(self) -> None:
        record = GitHubTranslator.to_domain({"name": "empty", "language": None})

        self.assertEqual(record.stargazers_count, 0)
        self.assertEqual(record.forks_count, 0)
        self.assertIsNone(record.language)

    def test_negative_counts_are_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            GitHubTranslator.to_domain({"stargazers_count": -1})


class TestPagination(unittest.TestCase):
    def test_next_and_prev_relations(self) -> None:
        pagination = GitHubTranslator.to_pagination({"next", "last", "first", "prev"}, page=2, per_page=10)

        self.assertEqual(pagination.current_page, 2)
        self.assertEqual(pagination.per_page, 10)
        self.assertTrue(pagination.has_next_page)
        self.assertTrue(pagination.has_previous_page)

    def test_last_page_has_only_prev(self) -> None:
        pagination = GitHubTranslator.to_pagination({"prev", "first"}, page=5)

        self.assertFalse(pagination.has_next_page)
        self.assertTrue(pagination.has_previous_page)

    def test_missing_header_means_single_page(self) -> None:
        for rels in (None, set()):
            with self.subTest(rels=rels):
                pagination = GitHubTranslator.to_pagination(rels)

                self.assertEqual(pagination.current_page, 1)
                self.assertEqual(pagination.per_page, 30)
                self.assertFalse(pagination.has_next_page)
                self.assertFalse(pagination.has_previous_page)
