import os
import sys
import unittest
from datetime import datetime, timedelta, timezone


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from hatch.helpers import ModuleNotLoaded, module_configured, module_enabled, render_location, strip_html
from hatch.timefmt import format_publish_date, from_now, parse_publish_date


class TestStripHtml(unittest.TestCase):
    def test_strips_tags(self) -> None:
        self.assertEqual(strip_html("<p>Hello <b>world</b></p>"), "Hello  world")
        self.assertEqual(strip_html(None), "")

    def test_truncates_on_word_boundary(self) -> None:
        self.assertEqual(strip_html("one two three four", 10), "one two...")
        self.assertEqual(strip_html("short", 10), "short")


class TestRenderLocation(unittest.TestCase):
    def test_short_address(self) -> None:
        location = {
            "address_components": [
                {"short_name": "1"},
                {"short_name": "Baker St"},
                {"short_name": "Marylebone"},
                {"short_name": "London"},
            ]
        }
        self.assertEqual(render_location(location), "Marylebone, London")

    def test_passthrough(self) -> None:
        self.assertEqual(render_location("Paris"), "Paris")
        self.assertIsNone(render_location(None))


class TestModules(unittest.TestCase):
    info = {
        "blog": {"settings": None},
        "stream": {"settings": {"fields": {"apiKey": {"required": True}, "interval": {}}}},
    }

    def test_enabled(self) -> None:
        group = {"modules": [{"name": "blog"}]}
        self.assertEqual(module_enabled(group, "blog"), {"name": "blog"})
        self.assertFalse(module_enabled(group, "stream"))
        self.assertFalse(module_enabled(None, "blog"))

    def test_configured(self) -> None:
        self.assertTrue(module_configured({"modules": [{"name": "blog"}]}, "blog", self.info))
        self.assertFalse(module_configured({"modules": [{"name": "stream"}]}, "stream", self.info))
        self.assertFalse(module_configured({"modules": [{"name": "stream", "contract": {"interval": 5}}]}, "stream", self.info))
        self.assertTrue(module_configured({"modules": [{"name": "stream", "contract": {"apiKey": "k"}}]}, "stream", self.info))
        self.assertFalse(module_configured({"modules": []}, "stream", self.info))

    def test_unloaded_module(self) -> None:
        with self.assertRaises(ModuleNotLoaded):
            module_configured({"modules": [{"name": "ghost"}]}, "ghost", self.info)


class TestTimeFormatting(unittest.TestCase):
    now = datetime(2013, 3, 10, 12, 0, 0, tzinfo=timezone.utc)

    def test_from_now(self) -> None:
        self.assertEqual(from_now(self.now - timedelta(seconds=10), now=self.now), "a few seconds ago")
        self.assertEqual(from_now(self.now - timedelta(minutes=5), now=self.now), "5 minutes ago")
        self.assertEqual(from_now(self.now - timedelta(hours=1), now=self.now), "an hour ago")
        self.assertEqual(from_now("2013-03-07T12:00:00Z", now=self.now), "3 days ago")
        self.assertEqual(from_now(self.now + timedelta(days=1), now=self.now), "in a day")
        self.assertEqual(from_now(None, now=self.now), "a few seconds ago")

    def test_from_now_rounds_up_at_band_edges(self) -> None:
        cases = [
            (timedelta(seconds=50), "a minute ago"),
            (timedelta(minutes=44), "44 minutes ago"),
            (timedelta(minutes=45), "an hour ago"),
            (timedelta(hours=21), "21 hours ago"),
            (timedelta(hours=22), "a day ago"),
            (timedelta(days=25), "25 days ago"),
            (timedelta(days=26), "a month ago"),
            (timedelta(days=60), "2 months ago"),
            (timedelta(days=320), "a year ago"),
            (timedelta(days=3 * 365), "3 years ago"),
        ]
        for delta, expected in cases:
            self.assertEqual(from_now(self.now - delta, now=self.now), expected, delta)

    def test_publish_date_round_trip_format(self) -> None:
        parsed = parse_publish_date("4-Mar-2013 09:15:00")
        self.assertEqual(parsed, datetime(2013, 3, 4, 9, 15, tzinfo=timezone.utc))
        self.assertEqual(format_publish_date("2013-03-04T09:15:00Z"), "4-Mar-2013 09:15:00")
        self.assertIsNone(parse_publish_date("soon"))


if __name__ == "__main__":
    unittest.main()
