"""
Entity store contract tests.

Every test runs against the in-memory, SQLite and Google Sheets stores;
they must behave identically.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from expense_tracker.config import GoogleSheetsSettings
from expense_tracker.models.expense import ExpenseUpdate
from expense_tracker.services.storage import (
    ConflictError,
    ConnectionError as StorageConnectionError,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    InMemoryExpenseStorage,
    month_bounds,
)


class TestUsers:
    """User creation and lookup."""

    async def test_create_and_get_user(self, storage):
        """Created users get an id and can be read back by id and email."""
        user = await storage.create_user("a@x.com", "Alice")

        assert user.id >= 1
        assert user.email == "a@x.com"
        assert user.name == "Alice"
        assert isinstance(user.created_at, datetime)
        assert await storage.get_user(user.id) == user
        assert await storage.get_user_by_email("a@x.com") == user

    async def test_missing_user_is_none(self, storage):
        """Unknown ids and emails are absent, not errors."""
        assert await storage.get_user(999) is None
        assert await storage.get_user_by_email("nobody@x.com") is None

    async def test_email_lookup_is_case_sensitive(self, storage):
        """Email matching is exact."""
        await storage.create_user("a@x.com", "Alice")
        assert await storage.get_user_by_email("A@X.COM") is None

    async def test_duplicate_email_conflicts(self, storage):
        """A second raw create with the same email raises ConflictError."""
        await storage.create_user("a@x.com", "Alice")
        with pytest.raises(ConflictError):
            await storage.create_user("a@x.com", "Someone Else")

    async def test_user_ids_are_unique(self, storage):
        """Each user gets its own id."""
        first = await storage.create_user("a@x.com", "Alice")
        second = await storage.create_user("b@y.com", "Bob")
        assert first.id != second.id


class TestExpenseAmounts:
    """Two-decimal precision survives storage."""

    async def test_amount_round_trips_exactly(self, storage, make_expense):
        """12.50 comes back as exactly "12.50"."""
        user = await storage.create_user("a@x.com", "Alice")
        created = await storage.create_expense(user.id, make_expense(amount="12.50"))

        [listed] = await storage.list_expenses(user.id)

        assert created.amount == Decimal("12.50")
        assert str(listed.amount) == "12.50"
        assert listed.model_dump(mode="json")["amount"] == "12.50"

    async def test_one_decimal_amount_is_padded(self, storage, make_expense):
        """12.5 is stored as 12.50."""
        user = await storage.create_user("a@x.com", "Alice")
        await storage.create_expense(user.id, make_expense(amount="12.5"))

        [listed] = await storage.list_expenses(user.id)
        assert str(listed.amount) == "12.50"


class TestListExpenses:
    """Owner-scoped listing, ordering and month filtering."""

    async def test_only_owner_expenses_listed(self, storage, make_expense):
        """Expenses of other users never appear."""
        alice = await storage.create_user("a@x.com", "Alice")
        bob = await storage.create_user("b@y.com", "Bob")
        await storage.create_expense(alice.id, make_expense(description="Alice's"))
        await storage.create_expense(bob.id, make_expense(description="Bob's"))

        listed = await storage.list_expenses(alice.id)

        assert [e.description for e in listed] == ["Alice's"]
        assert all(e.user_id == alice.id for e in listed)

    async def test_newest_date_first_ties_in_insertion_order(self, storage, make_expense):
        """Sorted by date descending; same-date expenses keep creation order."""
        user = await storage.create_user("a@x.com", "Alice")
        await storage.create_expense(user.id, make_expense(description="old", date=datetime(2024, 1, 10)))
        await storage.create_expense(user.id, make_expense(description="tie-1", date=datetime(2024, 3, 5)))
        await storage.create_expense(user.id, make_expense(description="new", date=datetime(2024, 4, 1)))
        await storage.create_expense(user.id, make_expense(description="tie-2", date=datetime(2024, 3, 5)))

        listed = await storage.list_expenses(user.id)

        assert [e.description for e in listed] == ["new", "tie-1", "tie-2", "old"]

    async def test_month_filter_boundaries(self, storage, make_expense):
        """Whole calendar month is included, neighbouring days are not."""
        user = await storage.create_user("a@x.com", "Alice")
        dates = {
            "day-before": datetime(2024, 2, 29, 23, 59, 59),
            "first": datetime(2024, 3, 1),
            "middle": datetime(2024, 3, 15, 12, 30),
            "last": datetime(2024, 3, 31),
            "last-evening": datetime(2024, 3, 31, 23, 59, 59),
            "day-after": datetime(2024, 4, 1),
        }
        for description, when in dates.items():
            await storage.create_expense(user.id, make_expense(description=description, date=when))

        march = await storage.list_expenses(user.id, 2024, 3)

        assert {e.description for e in march} == {"first", "middle", "last", "last-evening"}
        assert [e.description for e in march][0] == "last-evening"

    async def test_december_filter(self, storage, make_expense):
        """December's range ends at the new year."""
        user = await storage.create_user("a@x.com", "Alice")
        await storage.create_expense(user.id, make_expense(description="nye", date=datetime(2023, 12, 31, 22)))
        await storage.create_expense(user.id, make_expense(description="ny", date=datetime(2024, 1, 1)))

        december = await storage.list_expenses(user.id, 2023, 12)
        assert [e.description for e in december] == ["nye"]

    async def test_empty_month(self, storage, make_expense):
        """A month without expenses lists nothing."""
        user = await storage.create_user("a@x.com", "Alice")
        await storage.create_expense(user.id, make_expense())
        assert await storage.list_expenses(user.id, 2020, 1) == []


class TestUpdateExpense:
    """Partial, owner-checked updates."""

    async def test_only_supplied_fields_change(self, storage, make_expense):
        """Fields not in the update keep their values."""
        user = await storage.create_user("a@x.com", "Alice")
        created = await storage.create_expense(user.id, make_expense(amount="10.00", description="Pens"))

        updated = await storage.update_expense(
            created.id, user.id, ExpenseUpdate(description="Blue pens")
        )

        assert updated.description == "Blue pens"
        assert updated.amount == Decimal("10.00")
        assert updated.category == created.category
        assert updated.date == created.date
        assert updated.id == created.id
        assert updated.created_at == created.created_at
        [listed] = await storage.list_expenses(user.id)
        assert listed.description == "Blue pens"

    async def test_update_amount_and_date(self, storage, make_expense):
        """Amount and date updates are stored with full precision."""
        user = await storage.create_user("a@x.com", "Alice")
        created = await storage.create_expense(user.id, make_expense())

        await storage.update_expense(
            created.id,
            user.id,
            ExpenseUpdate(amount="99.90", date=datetime(2024, 5, 2)),
        )

        [listed] = await storage.list_expenses(user.id, 2024, 5)
        assert str(listed.amount) == "99.90"

    async def test_foreign_update_is_none_and_leaves_expense(self, storage, make_expense):
        """Updating someone else's expense looks like not-found."""
        alice = await storage.create_user("a@x.com", "Alice")
        bob = await storage.create_user("b@y.com", "Bob")
        created = await storage.create_expense(alice.id, make_expense(description="Pens"))

        result = await storage.update_expense(created.id, bob.id, ExpenseUpdate(description="Hacked"))

        assert result is None
        [listed] = await storage.list_expenses(alice.id)
        assert listed.description == "Pens"

    async def test_missing_update_is_none(self, storage):
        """Updating a non-existent expense returns None."""
        user = await storage.create_user("a@x.com", "Alice")
        assert await storage.update_expense(42, user.id, ExpenseUpdate(description="x")) is None


class TestDeleteExpense:
    """Owner-checked deletes."""

    async def test_delete_own_expense(self, storage, make_expense):
        """Deleting returns True once, then False."""
        user = await storage.create_user("a@x.com", "Alice")
        created = await storage.create_expense(user.id, make_expense())

        assert await storage.delete_expense(created.id, user.id) is True
        assert await storage.delete_expense(created.id, user.id) is False
        assert await storage.list_expenses(user.id) == []

    async def test_foreign_delete_is_false_and_keeps_expense(self, storage, make_expense):
        """Someone else's expense is not deleted and stays visible to its owner."""
        alice = await storage.create_user("a@x.com", "Alice")
        bob = await storage.create_user("b@y.com", "Bob")
        created = await storage.create_expense(alice.id, make_expense())

        assert await storage.delete_expense(created.id, bob.id) is False
        assert [e.id for e in await storage.list_expenses(alice.id)] == [created.id]

    async def test_delete_keeps_other_expenses(self, storage, make_expense):
        """Only the targeted expense disappears."""
        user = await storage.create_user("a@x.com", "Alice")
        first = await storage.create_expense(user.id, make_expense(description="first"))
        second = await storage.create_expense(user.id, make_expense(description="second"))

        await storage.delete_expense(first.id, user.id)

        assert [e.id for e in await storage.list_expenses(user.id)] == [second.id]

    async def test_ids_beyond_integer_range_are_absent(self, storage, make_expense):
        """Ids no table can hold behave like any other missing id."""
        user = await storage.create_user("a@x.com", "Alice")
        await storage.create_expense(user.id, make_expense())
        huge = 10**23

        assert await storage.get_user(huge) is None
        assert await storage.update_expense(huge, user.id, ExpenseUpdate(description="x")) is None
        assert await storage.delete_expense(huge, user.id) is False
        assert len(await storage.list_expenses(user.id)) == 1


class TestMonthlyStats:
    """Store-level monthly statistics."""

    async def test_two_expenses_in_march(self, storage, make_expense):
        """100.00 + 50.25 in March 2024 is one month totalling 150.25."""
        user = await storage.create_user("a@x.com", "Alice")
        await storage.create_expense(user.id, make_expense(
            amount="100.00", description="Pens", category="Office Supplies",
            date=datetime(2024, 3, 5),
        ))
        await storage.create_expense(user.id, make_expense(
            amount="50.25", description="Taxi", category="Travel",
            date=datetime(2024, 3, 20),
        ))

        stats = await storage.get_monthly_stats(user.id)

        assert len(stats) == 1
        assert stats[0].month == "2024-03"
        assert stats[0].total == Decimal("150.25")
        assert stats[0].count == 2

    async def test_stats_match_listing(self, storage, make_expense):
        """Totals equal the listing grouped by month, to the cent."""
        user = await storage.create_user("a@x.com", "Alice")
        other = await storage.create_user("b@y.com", "Bob")
        amounts = ["0.10", "0.20", "0.30", "19.99", "1000.01", "0.01", "333.33"]
        dates = [
            datetime(2023, 12, 31, 23, 0),
            datetime(2024, 1, 1),
            datetime(2024, 1, 15),
            datetime(2024, 1, 31, 18),
            datetime(2024, 2, 29),
            datetime(2024, 2, 1),
            datetime(2023, 12, 1),
        ]
        for amount, when in zip(amounts, dates):
            await storage.create_expense(user.id, make_expense(amount=amount, date=when))
        await storage.create_expense(other.id, make_expense(amount="500.00", date=datetime(2024, 1, 2)))

        stats = await storage.get_monthly_stats(user.id)
        listed = await storage.list_expenses(user.id)

        expected_totals = defaultdict(Decimal)
        expected_counts = defaultdict(int)
        for expense in listed:
            key = expense.date.strftime("%Y-%m")
            expected_totals[key] += expense.amount
            expected_counts[key] += 1

        assert [s.month for s in stats] == ["2024-02", "2024-01", "2023-12"]
        for stat in stats:
            assert stat.total == expected_totals[stat.month]
            assert str(stat.total) == str(expected_totals[stat.month].quantize(Decimal("0.01")))
            assert stat.count == expected_counts[stat.month]

    async def test_no_expenses_no_stats(self, storage):
        """Users without expenses have no months."""
        user = await storage.create_user("a@x.com", "Alice")
        assert await storage.get_monthly_stats(user.id) == []

    async def test_total_may_exceed_single_amount_precision(self, storage, make_expense):
        """A month can total more than any one expense is allowed to hold."""
        user = await storage.create_user("a@x.com", "Alice")
        await storage.create_expense(user.id, make_expense(amount="99999999.99"))
        await storage.create_expense(user.id, make_expense(amount="99999999.99"))

        [stat] = await storage.get_monthly_stats(user.id)

        assert stat.total == Decimal("199999999.98")
        assert str(stat.total) == "199999999.98"
        assert stat.count == 2


class TestInMemoryStorage:
    """Behaviour specific to the in-memory store."""

    async def test_instances_do_not_share_ids(self, make_expense):
        """Each store owns its id counters."""
        first = InMemoryExpenseStorage()
        second = InMemoryExpenseStorage()

        a = await first.create_user("a@x.com", "Alice")
        b = await second.create_user("a@x.com", "Alice")
        e1 = await first.create_expense(a.id, make_expense())
        e2 = await second.create_expense(b.id, make_expense())

        assert a.id == b.id == 1
        assert e1.id == e2.id == 1

    async def test_stored_expense_is_immutable(self, make_expense):
        """Handed-out records can't be modified in place."""
        store = InMemoryExpenseStorage()
        user = await store.create_user("a@x.com", "Alice")
        created = await store.create_expense(user.id, make_expense())

        with pytest.raises(PydanticValidationError):
            created.description = "changed"


class TestGoogleSheetsStorage:
    """Behaviour specific to the Sheets store."""

    async def test_amounts_written_as_strings(self, sheets_client, make_expense):
        """Rows hold the two-decimal string, not a float."""
        store = GoogleSheetsExpenseStorage(sheets_client)
        user = await store.create_user("a@x.com", "Alice")
        await store.create_expense(user.id, make_expense(amount="12.50"))

        header, row = sheets_client.expenses.rows
        assert header[2] == "amount"
        assert row[2] == "12.50"

    async def test_update_rewrites_row_in_place(self, sheets_client, make_expense):
        """An update overwrites the expense's own row and leaves others alone."""
        store = GoogleSheetsExpenseStorage(sheets_client)
        user = await store.create_user("a@x.com", "Alice")
        first = await store.create_expense(user.id, make_expense(description="first"))
        await store.create_expense(user.id, make_expense(description="second"))

        await store.update_expense(first.id, user.id, ExpenseUpdate(description="changed"))

        descriptions = [row[3] for row in sheets_client.expenses.rows[1:]]
        assert descriptions == ["changed", "second"]

    async def test_ids_not_reused_after_deleting_last_row(self, sheets_client, make_expense):
        """Deleting the newest expense does not free its id."""
        store = GoogleSheetsExpenseStorage(sheets_client)
        user = await store.create_user("a@x.com", "Alice")
        created = await store.create_expense(user.id, make_expense())
        await store.delete_expense(created.id, user.id)

        again = await store.create_expense(user.id, make_expense())

        assert again.id == created.id + 1

    def test_missing_credentials_file(self, tmp_path):
        missing = str(tmp_path / "credentials.json")
        with pytest.warns(UserWarning, match="credentials file not found"):
            settings = GoogleSheetsSettings(credentials_path=missing, spreadsheet_id="sheet-id")

        with pytest.raises(StorageConnectionError, match="credentials file not found"):
            GoogleSheetsClient(settings).connect()


class TestMonthBounds:
    """Calendar month ranges."""

    def test_regular_month(self):
        assert month_bounds(2024, 2) == (datetime(2024, 2, 1), datetime(2024, 3, 1))

    def test_december(self):
        assert month_bounds(2024, 12) == (datetime(2024, 12, 1), datetime(2025, 1, 1))

    @pytest.mark.parametrize("month", [0, 13, -1])
    def test_invalid_month(self, month):
        with pytest.raises(ValueError):
            month_bounds(2024, month)
