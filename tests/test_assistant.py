import unittest

from app.assistant.responder import classify_query, generate_response


class ClassifyQueryTests(unittest.TestCase):
    def test_topics(self):
        self.assertEqual(classify_query("What is the VAT rate?"), "tax")
        self.assertEqual(classify_query("Help with incorporation"), "business")
        self.assertEqual(classify_query("Late payment on an invoice"), "invoicing")
        self.assertEqual(classify_query("Bookkeeping basics"), "financial")
        self.assertEqual(classify_query("Hello there"), "default")

    def test_first_rule_wins(self):
        # mentions both tax and invoice
        self.assertEqual(classify_query("Is tax due on this invoice?"), "tax")
        self.assertEqual(classify_query("Business billing setup"), "business")

    def test_case_insensitive(self):
        self.assertEqual(classify_query("TAX deadlines"), "tax")
        self.assertEqual(classify_query(""), "default")


class GenerateResponseTests(unittest.TestCase):
    def test_tax_topic_is_rendered(self):
        self.assertIn("Based on your query about VAT,", generate_response("vat on exports"))
        self.assertIn("Based on your query about tax,", generate_response("corporate tax"))

    def test_default_overview(self):
        response = generate_response("Can you help me?")
        self.assertTrue(response.startswith("**Lucapacioli GPT - Your Financial & Legal Assistant**"))

    def test_deterministic(self):
        self.assertEqual(generate_response("accounting"), generate_response("accounting"))
        self.assertIn("Financial Management Guidance", generate_response("accounting"))
