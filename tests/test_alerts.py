from datetime import datetime, timedelta, timezone
from decimal import Decimal

from conftest import make_lot
from sales_hub.services.alerts import (
    AlertBoard,
    days_until,
    derived_alert_id,
    line_alerts,
    normalize_margin_threshold,
)
from sales_hub.services.basket import OrderLine

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _line(quantity="1", **lot):
    return OrderLine(line_id="l1", lot=make_lot(**lot), quantity=Decimal(quantity))


def _by_id(alerts):
    return {a.id: a for a in alerts}


class TestHelpers:
    def test_days_until_rounds_up(self):
        """Partial days count as a whole day; naive datetimes are UTC."""
        assert days_until(NOW + timedelta(days=2), NOW) == 2
        assert days_until(NOW + timedelta(days=2, hours=12), NOW) == 3
        assert days_until(datetime(2025, 12, 31), NOW) == -1

    def test_margin_threshold_percent_or_fraction(self):
        """Thresholds above 1 are read as whole percents."""
        assert normalize_margin_threshold(Decimal("25")) == Decimal("0.25")
        assert normalize_margin_threshold(Decimal("0.25")) == Decimal("0.25")


class TestLineAlerts:
    def test_clean_line_has_no_alerts(self):
        """Healthy margin, no expiry, no suggested qty."""
        assert line_alerts(_line(), NOW) == []

    def test_low_stock(self):
        """Remaining below suggested quantity warns with two decimals."""
        alerts = _by_id(line_alerts(_line(suggested_qty=Decimal("5")), NOW))
        alert = alerts[derived_alert_id("l1", "low-stock")]
        assert alert.severity == "warning"
        assert alert.origin == "derived"
        assert alert.text == "Espresso beans will be below suggested stock after this sale (4.00 left)."

    def test_expiry_window(self):
        """Expiry within 0..3 days warns; later or past does not."""
        soon = _by_id(line_alerts(_line(expiry_date=NOW + timedelta(days=2)), NOW))
        assert soon["l1:expiry"].text == "Espresso beans expires in 2 day(s)."
        assert line_alerts(_line(expiry_date=NOW + timedelta(days=10)), NOW) == []
        assert line_alerts(_line(expiry_date=NOW - timedelta(days=1)), NOW) == []

    def test_pricing_gap_is_info_and_skips_margin(self):
        """Missing cost data raises only the pricing info alert."""
        alerts = line_alerts(_line(has_pricing_gaps=True, unit_cost=Decimal("19000")), NOW)
        assert [a.id for a in alerts] == ["l1:pricing"]
        assert alerts[0].severity == "info"
        assert alerts[0].text == "Missing cost or margin data for Espresso beans."

    def test_margin_below_minimum(self):
        """Margin under the category minimum warns with one decimal."""
        alerts = _by_id(line_alerts(_line(unit_cost=Decimal("18000"), min_margin_pct=Decimal("20")), NOW))
        assert alerts["l1:margin"].text == "Espresso beans margin (11.1%) is below minimum target."

    def test_zero_cost_skips_margin(self):
        """No cost means no margin check."""
        assert line_alerts(_line(unit_cost=Decimal("0")), NOW) == []


class TestAlertBoard:
    def test_recompute_replaces_derived(self):
        """Derived alerts follow the lines; manual ones stay."""
        board = AlertBoard(clock=lambda: NOW)
        manual = board.push("Something happened", "info")
        board.recompute([_line(suggested_qty=Decimal("5"))])
        assert len(board.combined()) == 2
        board.recompute([])
        assert [a.id for a in board.combined()] == [manual.id]

    def test_dismiss_and_clear(self):
        """Manual alerts are dismissable by id."""
        board = AlertBoard(clock=lambda: NOW)
        a = board.push("one")
        board.push("two", "error")
        assert board.dismiss(a.id) is True
        assert board.dismiss(a.id) is False
        assert [x.text for x in board.manual] == ["two"]
        board.clear_manual()
        assert board.manual == []

    def test_feedback(self):
        """Feedback is a single slot outside the alert list."""
        board = AlertBoard()
        board.set_feedback("Saved", "success")
        assert board.feedback.text == "Saved"
        assert board.combined() == []
        board.clear_feedback()
        assert board.feedback is None
