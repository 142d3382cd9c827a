import unittest

import activities
import rules
from errors import BadRequest, NotFound, PortalError
from tests.support import PortalTestCase

ACTIVITY = {
    "nazev": "Vykrádání bank",
    "popis": "Velká loupež",
    "riziko": "Vysoké",
    "rizikoLevel": "high",
    "category": "illegal",
    "borderColor": "#f00",
}


class RulesTests(PortalTestCase):
    def setUp(self):
        super().setUp()
        rules.save_rule_item('section', {'id': 'general', 'title': 'Obecná', 'order_index': 0})
        rules.save_rule_item('subcategory', {'id': 'rp', 'section_id': 'general', 'title': 'RP'})
        self.rule_id = rules.save_rule_item(
            'rule', {'section_id': 'general', 'subcategory_id': 'rp', 'content': 'Žádný powergaming'}
        )['id']

    def test_public_rules_lists_everything(self):
        result = rules.get_public_rules()
        self.assertEqual([s['id'] for s in result['sections']], ['general'])
        self.assertEqual(result['rules'][0]['content'], 'Žádný powergaming')
        self.assertEqual(result['subcategories'][0]['title'], 'RP')

    def test_section_save_is_an_upsert(self):
        rules.save_rule_item('section', {'id': 'general', 'title': 'Přejmenováno'})
        sections = rules.get_admin_rules()['sections']
        self.assertEqual(len(sections), 1)
        self.assertEqual(sections[0]['title'], 'Přejmenováno')

    def test_rule_update(self):
        result = rules.save_rule_item(
            'rule', {'id': self.rule_id, 'section_id': 'general', 'content': 'Nový text'}
        )
        self.assertEqual(result['message'], 'Rule updated successfully')
        self.assertEqual(rules.get_admin_rules()['rules'][0]['content'], 'Nový text')

    def test_missing_fields_and_unknown_type(self):
        with self.assertRaises(BadRequest):
            rules.save_rule_item('rule', {'section_id': 'general'})
        with self.assertRaises(BadRequest):
            rules.save_rule_item('chapter', {'id': 'x'})

    def test_reorder(self):
        rules.save_rule_item('section', {'id': 'crime', 'title': 'Kriminalita', 'order_index': 1})
        rules.reorder('sections', [{'id': 'general', 'order_index': 1}, {'id': 'crime', 'order_index': 0}])
        self.assertEqual([s['id'] for s in rules.get_public_rules()['sections']], ['crime', 'general'])

    def test_reorder_with_bad_item_fails_whole_batch(self):
        with self.assertRaises(PortalError) as ctx:
            rules.reorder('sections', [{'id': 'general', 'order_index': 5}, {'id': 'crime', 'order_index': 'x'}])
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(rules.get_public_rules()['sections'][0]['order_index'], 0)

    def test_reorder_invalid_type(self):
        with self.assertRaises(BadRequest):
            rules.reorder('chapters', [])

    def test_deleting_section_removes_contents(self):
        rules.delete_rule_item('section', 'general')
        result = rules.get_admin_rules()
        self.assertEqual(result, {'sections': [], 'rules': [], 'subcategories': []})

    def test_deleting_subcategory_removes_its_rules(self):
        rules.delete_rule_item('subcategory', 'rp')
        result = rules.get_admin_rules()
        self.assertEqual(len(result['sections']), 1)
        self.assertEqual(result['rules'], [])


class ActivitiesTests(PortalTestCase):
    def test_create_and_list(self):
        activity_id = activities.create_activity(ACTIVITY)
        listed = activities.list_activities()

        self.assertEqual(listed[0]['id'], activity_id)
        self.assertEqual(listed[0]['riziko_level'], 'high')
        self.assertEqual(listed[0]['border_color'], '#f00')
        self.assertEqual(listed[0]['span'], 1)

    def test_required_fields(self):
        with self.assertRaises(BadRequest):
            activities.create_activity({"nazev": "Bez popisu"})

    def test_update_and_delete(self):
        activity_id = activities.create_activity(ACTIVITY)
        activities.update_activity(activity_id, dict(ACTIVITY, nazev="Rybaření", span=2))
        self.assertEqual(activities.list_activities()[0]['nazev'], "Rybaření")

        activities.delete_activity(activity_id)
        self.assertEqual(activities.list_activities(), [])

    def test_missing_activity(self):
        with self.assertRaises(NotFound):
            activities.update_activity(404, ACTIVITY)
        with self.assertRaises(NotFound):
            activities.delete_activity(404)


if __name__ == '__main__':
    unittest.main()
