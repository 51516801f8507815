import unittest

from tour_scraper.cleanup import clean_tour_title, extract_destinations
from tour_scraper.config import DEFAULT_DESTINATION_KEYWORDS
from tour_scraper.models import TourData


class TitleCleanupTests(unittest.TestCase):
    def test_structured_title_is_split_into_fields(self) -> None:
        tour = TourData(title="Sacred Valley Tour 5 days from $299 Cusco, Sacred Valley")

        clean_tour_title(tour, DEFAULT_DESTINATION_KEYWORDS)

        self.assertEqual(tour.title, "Sacred Valley Tour")
        self.assertEqual(tour.duration, "5 days")
        self.assertEqual(tour.price, "$299")
        self.assertEqual(tour.currency, "USD")
        self.assertEqual(tour.location, "Cusco, Sacred Valley")

    def test_existing_fields_are_not_overwritten(self) -> None:
        tour = TourData(
            title="Lima Food Tour 4 hours from $95 Lima",
            duration="3.5 hours",
            price="$90",
        )

        clean_tour_title(tour, DEFAULT_DESTINATION_KEYWORDS)

        self.assertEqual(tour.title, "Lima Food Tour")
        self.assertEqual(tour.duration, "3.5 hours")
        self.assertEqual(tour.price, "$90")
        self.assertEqual(tour.location, "Lima")

    def test_fallback_strips_duration_and_price_separately(self) -> None:
        tour = TourData(title="Colca Canyon Adventure - €240 - 2 days from", location="Various Locations")

        clean_tour_title(tour, DEFAULT_DESTINATION_KEYWORDS)

        self.assertEqual(tour.title, "Colca Canyon Adventure")
        self.assertEqual(tour.duration, "2 days")
        self.assertEqual(tour.price, "€240")
        self.assertEqual(tour.currency, "EUR")
        self.assertEqual(tour.location, "Colca Canyon")

    def test_known_location_is_kept_in_fallback(self) -> None:
        tour = TourData(title="Puno Islands Day Trip", location="Lake Titicaca")

        clean_tour_title(tour, DEFAULT_DESTINATION_KEYWORDS)

        self.assertEqual(tour.title, "Puno Islands Day Trip")
        self.assertEqual(tour.location, "Lake Titicaca")

    def test_title_that_is_only_noise_is_kept(self) -> None:
        tour = TourData(title="5 days $299")

        clean_tour_title(tour, DEFAULT_DESTINATION_KEYWORDS)

        self.assertEqual(tour.title, "5 days $299")
        self.assertEqual(tour.duration, "5 days")
        self.assertEqual(tour.price, "$299")

    def test_group_size_is_not_taken_for_the_price(self) -> None:
        tour = TourData(title="Lima Food Tour for 2 $150")

        clean_tour_title(tour, DEFAULT_DESTINATION_KEYWORDS)

        self.assertEqual(tour.title, "Lima Food Tour for 2")
        self.assertEqual(tour.price, "$150")
        self.assertEqual(tour.location, "Lima")


class DestinationTests(unittest.TestCase):
    def test_destinations_are_unique_and_canonical(self) -> None:
        found = extract_destinations(
            "machu picchu by train, Cusco city and MACHU PICCHU again", DEFAULT_DESTINATION_KEYWORDS
        )
        self.assertEqual(found, ["Machu Picchu", "Cusco"])

    def test_custom_keywords(self) -> None:
        self.assertEqual(extract_destinations("Queenstown and Milford Sound", ["Milford Sound"]), ["Milford Sound"])
        self.assertEqual(extract_destinations("Anything", []), [])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
