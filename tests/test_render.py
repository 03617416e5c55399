from __future__ import annotations

import unittest

from notification_core.domain.render import render_plain, render_rich, truncate_sms
from notification_core.errors import RenderError


class PlainRenderTests(unittest.TestCase):
    def test_replaces_known_placeholder(self) -> None:
        self.assertEqual(render_plain("Hello $${orgName}", {"orgName": "Acme"}), "Hello Acme")

    def test_leaves_unknown_placeholder_untouched(self) -> None:
        self.assertEqual(render_plain("$${missing}", {}), "$${missing}")

    def test_none_value_renders_empty(self) -> None:
        self.assertEqual(render_plain("[$${name}]", {"name": None}), "[]")

    def test_replaces_every_occurrence_and_stringifies(self) -> None:
        rendered = render_plain("$${n} + $${n} = $${sum}", {"n": 2, "sum": 4})
        self.assertEqual(rendered, "2 + 2 = 4")

    def test_does_not_escape_markup(self) -> None:
        self.assertEqual(render_plain("$${v}", {"v": "<b>&</b>"}), "<b>&</b>")

    def test_single_dollar_marker_is_not_a_placeholder(self) -> None:
        self.assertEqual(render_plain("${orgName}", {"orgName": "Acme"}), "${orgName}")


class RichRenderTests(unittest.TestCase):
    def test_replaces_placeholders(self) -> None:
        rendered = render_rich("<p>Hi $${userName}, welcome to $${orgName}</p>", {
            "userName": "Ana",
            "orgName": "Acme",
        })
        self.assertEqual(rendered, "<p>Hi Ana, welcome to Acme</p>")

    def test_escapes_inserted_values_only(self) -> None:
        rendered = render_rich("<p>$${orgName}</p>", {"orgName": "<b>Acme & Co</b>"})
        self.assertEqual(rendered, "<p>&lt;b&gt;Acme &amp; Co&lt;/b&gt;</p>")

    def test_missing_key_renders_blank(self) -> None:
        self.assertEqual(render_rich("Hello $${missing}!", {}), "Hello !")

    def test_none_variables_render_blank(self) -> None:
        self.assertEqual(render_rich("Hello $${name}!", None), "Hello !")

    def test_missing_template_raises_render_error(self) -> None:
        with self.assertRaises(RenderError):
            render_rich(None, {"a": 1})

    def test_value_that_cannot_be_stringified_raises_render_error(self) -> None:
        class Broken:
            def __str__(self) -> str:
                raise ValueError("boom")

        with self.assertRaises(RenderError) as exc:
            render_rich("$${value}", {"value": Broken()})
        self.assertIn("boom", str(exc.exception))


class TruncateSmsTests(unittest.TestCase):
    def test_long_body_is_cut_to_160_with_ellipsis(self) -> None:
        truncated = truncate_sms("x" * 200)
        self.assertEqual(truncated, "x" * 157 + "...")
        self.assertEqual(len(truncated), 160)

    def test_body_at_limit_is_unchanged(self) -> None:
        body = "y" * 160
        self.assertEqual(truncate_sms(body), body)


if __name__ == "__main__":
    unittest.main()
