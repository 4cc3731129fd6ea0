import pytest

from actual_node.errors import ValidationError
from actual_node.payloads import (
    SCHEDULE,
    TRANSACTIONS,
    UPDATES,
    dump,
    normalize_month,
    parse_json_field,
)


@pytest.mark.parametrize(
    "value, expected",
    [("2024-03", "2024-03"), ("2024-03-31", "2024-03"), (" 2024-12 ", "2024-12")],
)
def test_normalize_month(value, expected):
    assert normalize_month(value) == expected


@pytest.mark.parametrize("value", ["2024-13", "2024-3", "March", "", None])
def test_normalize_month_rejects(value):
    with pytest.raises(ValidationError, match="expected YYYY-MM"):
        normalize_month(value)


class TestParseJsonField:
    def test_accepts_text(self):
        updates = parse_json_field("updates", '[{"month": "2024-01", "categoryId": "c", "amount": 5}]', UPDATES)

        assert [dump(u) for u in updates] == [{"month": "2024-01", "category_id": "c", "amount": 5}]

    def test_accepts_decoded_values(self):
        details = parse_json_field("scheduleDetails", {"name": "Gym", "postsTransaction": True}, SCHEDULE)

        assert dump(details) == {"name": "Gym", "posts_transaction": True}

    def test_invalid_json(self):
        with pytest.raises(ValidationError, match="'updates' is not valid JSON"):
            parse_json_field("updates", "[{'month': 1}]", UPDATES)

    def test_blank_text_is_missing(self):
        with pytest.raises(ValidationError, match="'updates' is invalid"):
            parse_json_field("updates", "   ", UPDATES)

    def test_error_names_the_location(self):
        with pytest.raises(ValidationError) as excinfo:
            parse_json_field("updates", '[{"month": "2024-01", "amount": 5}]', UPDATES)

        assert "0.categoryId" in excinfo.value.message

    def test_update_needs_amount_or_carryover(self):
        with pytest.raises(ValidationError, match="amount or a carryover"):
            parse_json_field("updates", '[{"month": "2024-01", "categoryId": "c"}]', UPDATES)

    def test_bad_amount_operator(self):
        with pytest.raises(ValidationError, match="scheduleDetails"):
            parse_json_field("scheduleDetails", '{"amountOp": "roughly"}', SCHEDULE)


def test_transactions_keep_unknown_keys_out():
    (transaction,) = parse_json_field(
        "transactions",
        [{"date": "2024-02-29", "amount": 100, "subtransactions": []}],
        TRANSACTIONS,
    )

    assert dump(transaction) == {"date": "2024-02-29", "amount": 100, "cleared": False}
