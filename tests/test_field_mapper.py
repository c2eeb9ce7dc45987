"""
Field mapping tests
"""
import unittest

from trello_notion_sync.core.field_mapper import (
    SCORE_FIELDS,
    extract_custom_field_values,
    read_field_value,
    to_notion_properties,
    to_number,
    to_trello_update,
    values_differ,
)
from trello_notion_sync.models import Card, CustomFieldDefinition, CustomFieldItem, FieldKind
from trello_notion_sync.notion import properties as props


DEFINITIONS = [
    CustomFieldDefinition("f1", "Reach", FieldKind.NUMBER),
    CustomFieldDefinition("f2", "Confidence", FieldKind.NUMBER),
    CustomFieldDefinition("f3", "Effort", FieldKind.NUMBER),
    CustomFieldDefinition("f4", "Impact", FieldKind.NUMBER),
    CustomFieldDefinition("f5", "Notion Link", FieldKind.TEXT),
    CustomFieldDefinition("f6", "synced", FieldKind.CHECKBOX),
]


class TestValuesDiffer(unittest.TestCase):
    """Change predicate"""

    def test_both_missing(self):
        self.assertFalse(values_differ(None, None))

    def test_one_missing(self):
        self.assertTrue(values_differ(None, 0))
        self.assertTrue(values_differ("", None))

    def test_numbers_within_tolerance(self):
        self.assertFalse(values_differ(5, 5.0))
        self.assertFalse(values_differ(2.5, 2.5004))
        self.assertTrue(values_differ(2.5, 2.51))

    def test_strings_compared_trimmed(self):
        self.assertFalse(values_differ("  Task ", "Task"))
        self.assertTrue(values_differ("Task", "task"))

    def test_mixed_types_compare_as_text(self):
        self.assertFalse(values_differ("5", 5))
        self.assertFalse(values_differ(True, "True"))

    def test_symmetric(self):
        pairs = [(None, 1), (1, 2), ("a", "b"), (3, 3.0), ("x ", "x")]
        for a, b in pairs:
            self.assertEqual(values_differ(a, b), values_differ(b, a))

    def test_reflexive(self):
        for value in [0, 1.5, "text", True, None]:
            self.assertFalse(values_differ(value, value))


class TestToNumber(unittest.TestCase):

    def test_numeric_strings(self):
        self.assertEqual(to_number("5"), 5)
        self.assertIsInstance(to_number("5"), int)
        self.assertEqual(to_number(" 2.5 "), 2.5)

    def test_not_numeric(self):
        self.assertIsNone(to_number("high"))
        self.assertIsNone(to_number(None))
        self.assertIsNone(to_number(True))
        self.assertIsNone(to_number("nan"))


class TestReadFieldValue(unittest.TestCase):

    def test_number(self):
        self.assertEqual(read_field_value(FieldKind.NUMBER, {"number": "7"}), 7)
        self.assertEqual(read_field_value(FieldKind.NUMBER, {}), 0)

    def test_text(self):
        self.assertEqual(read_field_value(FieldKind.TEXT, {"text": "hello"}), "hello")

    def test_checkbox(self):
        self.assertIs(read_field_value(FieldKind.CHECKBOX, {"checked": "true"}), True)
        self.assertIs(read_field_value(FieldKind.CHECKBOX, {"checked": "false"}), False)

    def test_other_kind_guesses_from_shape(self):
        self.assertEqual(read_field_value(FieldKind.OTHER, {"number": "3"}), 3)
        self.assertEqual(read_field_value(FieldKind.OTHER, {"text": "x"}), "x")
        self.assertIs(read_field_value(FieldKind.OTHER, {"checked": "true"}), True)
        self.assertEqual(read_field_value(FieldKind.OTHER, None), 0)


class TestMapping(unittest.TestCase):
    """Card <-> entry mapping"""

    def setUp(self):
        self.card = Card(
            id="abc",
            name="Task A",
            list_id="l1",
            custom_field_items=[
                CustomFieldItem("f1", {"number": "5"}),
                CustomFieldItem("f2", {"number": "0.8"}),
                CustomFieldItem("f3", {"number": "2"}),
                CustomFieldItem("f4", {"number": "3"}),
                CustomFieldItem("f6", {"checked": "true"}),
                CustomFieldItem("unknown", {"text": "ignored"}),
            ],
        )

    def test_extract_custom_field_values(self):
        values = extract_custom_field_values(self.card, DEFINITIONS)

        self.assertEqual(values, {
            "Reach": 5,
            "Confidence": 0.8,
            "Effort": 2,
            "Impact": 3,
            "synced": True,
        })

    def test_to_notion_properties(self):
        values = extract_custom_field_values(self.card, DEFINITIONS)
        properties = to_notion_properties(self.card, values, "Doing")

        self.assertEqual(props.get_title(properties), "Task A")
        self.assertEqual(props.get_select(properties, props.DEPARTMENT), "Doing")
        self.assertEqual(props.get_rich_text(properties, props.TRELLO_ID), "abc")
        self.assertTrue(props.get_checkbox(properties, props.SYNCED))
        self.assertEqual(props.get_number(properties, "Confidence"), 0.8)

    def test_missing_list_is_unknown(self):
        properties = to_notion_properties(self.card, {}, None)

        self.assertEqual(props.get_select(properties, props.DEPARTMENT), "Unknown")

    def test_non_numeric_score_is_skipped(self):
        properties = to_notion_properties(self.card, {"Reach": "lots", "Effort": 2}, "Doing")

        self.assertNotIn("Reach", properties)
        self.assertEqual(props.get_number(properties, "Effort"), 2)

    def test_round_trip(self):
        values = extract_custom_field_values(self.card, DEFINITIONS)
        entry = {"id": "page-1", "properties": to_notion_properties(self.card, values, "Doing")}

        card_update, custom_fields = to_trello_update(entry)

        self.assertEqual(card_update["name"], self.card.name)
        for name in SCORE_FIELDS:
            self.assertFalse(values_differ(custom_fields[name], values[name]))
        self.assertIs(custom_fields["synced"], True)

    def test_to_trello_update_without_title(self):
        card_update, custom_fields = to_trello_update({"id": "p", "properties": {}})

        self.assertEqual(card_update, {})
        self.assertEqual(custom_fields, {"synced": True})


if __name__ == '__main__':
    unittest.main()
