import asyncio
import threading

from conftest import make_customer
from sales_hub.services.alerts import AlertBoard
from sales_hub.services.customers import CustomerBinding


def _binding(backend):
    changes = []
    binding = CustomerBinding(backend, AlertBoard(), on_change=lambda: changes.append(1))
    return binding, changes


class TestLookup:
    def test_found_binds_customer(self, backend):
        """A match is bound and reported in the feedback banner."""
        backend.customers["0901234567"] = make_customer()
        binding, changes = _binding(backend)
        found = asyncio.run(binding.lookup(" 0901234567 "))
        assert found.full_name == "Jane Roe"
        assert binding.customer is found
        assert binding.phone == "0901234567"
        assert binding.alerts.feedback.text == "Customer Jane Roe loaded."
        assert changes == [1]
        assert binding.lookup_in_flight is False

    def test_not_found_unbinds(self, backend):
        """No match unbinds any previous customer and raises an info alert."""
        binding, _ = _binding(backend)
        binding.bind(make_customer())
        assert asyncio.run(binding.lookup("0000")) is None
        assert binding.customer is None
        assert [a.text for a in binding.alerts.manual] == ["No customer found for that phone number."]

    def test_blank_phone_makes_no_call(self, backend):
        """Blank input is rejected locally."""
        binding, _ = _binding(backend)
        asyncio.run(binding.lookup("   "))
        assert backend.calls == []
        assert binding.alerts.manual[0].severity == "info"

    def test_backend_error_keeps_binding(self, backend):
        """A failed lookup leaves the current customer bound."""
        backend.fail.add("lookup_customer_by_phone")
        binding, _ = _binding(backend)
        current = make_customer()
        binding.bind(current)
        binding.phone = "0900000000"
        asyncio.run(binding.lookup("0901234567"))
        assert binding.customer is current
        assert binding.phone == "0900000000"
        assert binding.alerts.manual[0].text == "Unable to lookup customer. Please try again."
        assert binding.lookup_in_flight is False

    def test_second_lookup_while_in_flight_is_ignored(self, backend):
        """Only one lookup request runs at a time."""
        backend.customers["0901234567"] = make_customer()
        release = threading.Event()
        original = backend.lookup_customer_by_phone

        def slow_lookup(phone):
            release.wait(2)
            return original(phone)

        backend.lookup_customer_by_phone = slow_lookup
        binding, _ = _binding(backend)

        async def scenario():
            first = asyncio.create_task(binding.lookup("0901234567"))
            while not binding.lookup_in_flight:
                await asyncio.sleep(0.01)
            second = await binding.lookup("0901234567")
            release.set()
            return await first, second

        first, second = asyncio.run(scenario())
        assert second is None
        assert first.full_name == "Jane Roe"
        assert backend.call_names() == ["lookup_customer_by_phone"]
        assert binding.lookup_in_flight is False


class TestCreateOrUpdate:
    def test_create_binds_new_customer(self, backend):
        """A new phone number creates a customer."""
        binding, _ = _binding(backend)
        customer = asyncio.run(binding.create_or_update(" Ann Lee ", "0911", "ann@example.com", ""))
        assert customer.id == "42"
        assert customer.full_name == "Ann Lee"
        assert customer.loyalty_code is None
        assert binding.customer is customer
        assert binding.phone == "0911"
        assert binding.alerts.feedback.text == "Loyalty customer created successfully."

    def test_existing_phone_is_updated(self, backend):
        """An existing phone number updates the record."""
        backend.customers["0901234567"] = make_customer()
        binding, _ = _binding(backend)
        customer = asyncio.run(binding.create_or_update("Jane R.", "0901234567", "jr@example.com"))
        assert customer.is_updated is True
        assert customer.loyalty_points == 3500
        assert binding.alerts.manual[0].text == "Existing loyalty customer updated from phone number."

    def test_missing_field_makes_no_call(self, backend):
        """All three fields are required before any request."""
        binding, _ = _binding(backend)
        assert asyncio.run(binding.create_or_update("Ann", "0911", "  ")) is None
        assert backend.calls == []
        assert binding.alerts.manual[0].text == "All loyalty card fields are required."

    def test_backend_message_is_surfaced(self, backend):
        """The backend's own error text is preferred over the fallback."""
        from sales_hub.client import SalesApiError

        def reject(payload):
            raise SalesApiError("HTTP 400", status_code=400, server_message="Email already used")

        backend.create_customer = reject
        binding, _ = _binding(backend)
        asyncio.run(binding.create_or_update("Ann", "0911", "ann@example.com"))
        assert binding.customer is None
        assert binding.alerts.manual[0].text == "Email already used"
        assert binding.create_in_flight is False


class TestClear:
    def test_clear_drops_customer_and_phone(self, backend):
        """clear() unbinds and forgets the lookup phone."""
        binding, changes = _binding(backend)
        binding.phone = "0901"
        binding.bind(make_customer())
        binding.clear()
        assert binding.customer is None
        assert binding.phone == ""
        assert len(changes) == 2
