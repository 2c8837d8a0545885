"""Shared test fixtures for the lap scraper."""

import pytest

from lapscraper.scraper import Diagnostics


def make_page(header, *rows, table_class="NBT"):
    """Render a results page with one table."""
    def render(cells):
        return "<tr>" + "".join(f"<td>{cell}</td>" for cell in cells) + "</tr>"

    body = render(header) + "".join(render(row) for row in rows)
    return (
        "<html><head><title>Race 489</title></head><body>"
        "<table class='menu'><tr><td>Home</td><td>Races</td></tr></table>"
        f"<table class='{table_class}'>{body}</table>"
        "</body></html>"
    )


@pytest.fixture
def diagnostics():
    return Diagnostics()


@pytest.fixture
def sample_page():
    """A live-timing page with a position, result and gap column."""
    return make_page(
        ["P", "#", "Team", "Entrant", "Result", "Gap", "L-Lap", "Best", "Spd", "Dist"],
        ["1", "12", "Acme Racing", "J. Doe", "14L", "", "1'42.0", "1'40.5", "150.2", "21.4"],
        ["2", "7", "Greenfield School", "Greenfield A", "14L", "3.2", "1'45.3", "1'43.9", "148.0", "21.3"],
        ["3", "33", "Riverside Academy", "Riverside 2", "13L", "1 lap", "", "", "-", "-"],
        ["DNF", "", "Broken Car Co", "Crashed", "", "", "", "", "", ""],
    )


@pytest.fixture
def page_factory():
    return make_page
