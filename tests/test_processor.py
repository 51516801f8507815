from datetime import datetime, timezone
import unittest

from tour_scraper.config import DEFAULT_DESTINATION_KEYWORDS
from tour_scraper.models import Activity, TourData
from tour_scraper.processor import (
    build_activities,
    deduplicate_activities,
    deduplicate_tours,
    is_valid_tour,
    prepare_tours,
    summarise_activities,
    validate_tours,
)

LONG_DESCRIPTION = "A full day exploring ruins, markets and viewpoints with a local guide and lunch."


class ValidationTests(unittest.TestCase):
    def test_candidate_with_only_short_description_is_dropped(self) -> None:
        tour = TourData(title="Lonely Heading", description="Short text")
        self.assertFalse(is_valid_tour(tour))
        self.assertEqual(validate_tours([tour]), [])

    def test_two_pieces_of_evidence_are_enough(self) -> None:
        cases = [
            TourData(title="Priced And Timed", price="$10", duration="2 hours"),
            TourData(title="Described With Image", description=LONG_DESCRIPTION, images=["/a.jpg"]),
            TourData(title="Priced With Image", price="€20", images=["/a.jpg"]),
        ]
        for tour in cases:
            with self.subTest(title=tour.title):
                self.assertTrue(is_valid_tour(tour))

    def test_comma_only_price_does_not_count(self) -> None:
        self.assertFalse(is_valid_tour(TourData(title="Odd Price", price=" , ", duration="3 days")))


class DeduplicationTests(unittest.TestCase):
    def test_priced_candidate_survives(self) -> None:
        priced = TourData(title="City Tour", price="$50", duration="3 hours")
        unpriced = TourData(title="city tour", duration="3 hours", images=["/c.jpg"])

        for order in ([priced, unpriced], [unpriced, priced]):
            with self.subTest(first=order[0].title):
                result = deduplicate_tours(order)
                self.assertEqual(len(result), 1)
                self.assertIs(result[0], priced)

    def test_whitespace_is_ignored_in_key(self) -> None:
        result = deduplicate_tours(
            [TourData(title="Rainbow  Mountain", price="$40"), TourData(title="Rainbow Mountain", price="$45")]
        )
        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].price, "$40")


class PrepareToursTests(unittest.TestCase):
    def test_backfilled_fields_count_as_evidence(self) -> None:
        tours = prepare_tours(
            [TourData(title="Nazca Lines Flight 2 hours from $180 Nazca")], DEFAULT_DESTINATION_KEYWORDS
        )
        self.assertEqual(len(tours), 1)
        self.assertEqual(tours[0].title, "Nazca Lines Flight")
        self.assertEqual(tours[0].location, "Nazca")


class ActivityBuildTests(unittest.TestCase):
    def test_activities_get_ids_and_defaults(self) -> None:
        stamp = datetime(2024, 5, 1, tzinfo=timezone.utc)
        tours = [
            TourData(title="Paracas Boat", price="From $1,299.50", duration="4 hours"),
            TourData(title="Cusco Walk", price="€850", description=LONG_DESCRIPTION, currency="EUR"),
            TourData(title="No Price", duration="2 days", images=["/a.jpg", "/a.jpg"]),
        ]

        activities = build_activities(tours, timestamp=stamp)

        millis = int(stamp.timestamp() * 1000)
        self.assertEqual([a.id for a in activities], [f"tour-{millis}-{i}" for i in range(3)])
        self.assertEqual(activities[0].price, 1299.5)
        self.assertEqual(activities[0].currency, "USD")
        self.assertEqual(activities[0].location, "Various Locations")
        self.assertEqual(activities[1].price, 850.0)
        self.assertEqual(activities[1].currency, "EUR")
        self.assertEqual(activities[1].duration, "Varies")
        self.assertIsNone(activities[2].price)
        self.assertEqual(activities[2].images, ["/a.jpg"])
        self.assertEqual(activities[2].to_dict()["category"], "activity")


def _activity(title: str, price, location: str = "Cusco", currency: str = "USD") -> Activity:
    return Activity(id=title, url="https://site.com", title=title, price=price, location=location, currency=currency)


def test_summary_ignores_unpriced_activities() -> None:
    summary = summarise_activities(
        [
            _activity("A", 100.0, "Cusco"),
            _activity("B", 300.0, "Lima"),
            _activity("C", None, "Cusco"),
        ]
    )
    assert summary["count"] == 3
    assert summary["destinations"] == ["Cusco", "Lima"]
    assert summary["price_range"] == {"min": 100.0, "max": 300.0}
    assert summary["average_price"] == 200.0
    assert summary["currencies"] == ["USD"]


def test_summary_of_nothing() -> None:
    summary = summarise_activities([])
    assert summary["count"] == 0
    assert summary["price_range"] is None
    assert summary["average_price"] is None


def test_cross_page_duplicates_match_on_title_and_price() -> None:
    first = _activity("Inca Trail", 650.0)
    repeat = _activity("Inca Trail", 650.0, location="Machu Picchu")
    cheaper = _activity("Inca Trail", 600.0)
    unpriced = _activity("Lima Food", None)
    unpriced_repeat = _activity("Lima Food", None)

    kept = deduplicate_activities([first, repeat, cheaper, unpriced, unpriced_repeat])

    assert kept == [first, cheaper, unpriced]
