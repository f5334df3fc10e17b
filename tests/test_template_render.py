import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from app.template_render import content_view_key, render_content


TEMPLATES = {
    "text": "<h2>{{ post.title }}</h2><p>{{ post.text | strip_html(12) }}</p>",
    "summary/text": "<li>{{ post.title | upper }}</li>",
    "broken": "{{ post.title ",
}


class TestRenderContent(unittest.TestCase):
    def test_renders_by_type(self) -> None:
        html = render_content({"type": "text", "title": "Hello", "text": "plain words here and more"}, TEMPLATES)
        self.assertEqual(html, "<h2>Hello</h2><p>plain words...</p>")

    def test_view_override(self) -> None:
        html = render_content({"type": "text", "title": "Hello"}, TEMPLATES, view="summary")
        self.assertEqual(html, "<li>HELLO</li>")

    def test_autoescapes_fields(self) -> None:
        html = render_content({"type": "summary", "title": "<script>"}, {"summary": "{{ post.title }}"})
        self.assertEqual(html, "&lt;script&gt;")

    def test_errors_are_returned_as_text(self) -> None:
        self.assertEqual(render_content({"type": "video"}, TEMPLATES), "Template not found: video")
        html = render_content({"type": "broken", "title": "x"}, TEMPLATES)
        self.assertTrue(html)
        self.assertNotIn("{{", html)

    def test_view_key(self) -> None:
        self.assertEqual(content_view_key({}), "default")
        self.assertEqual(content_view_key({"type": "photo"}, "/summary/"), "summary/photo")


if __name__ == "__main__":
    unittest.main()
