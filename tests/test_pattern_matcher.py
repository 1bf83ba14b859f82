import unittest

from patterns.library import PATTERN_LIBRARY_VERSION, PatternDefinition, PatternRegistry, default_registry
from patterns.matcher import DeploymentPattern, PatternMatcher, TestingPattern


class TestPatternMatcher(unittest.TestCase):
    def setUp(self):
        self.matcher = PatternMatcher()

    def test_single_keyword_uses_base_score(self):
        records = self.matcher.match_testing_patterns('qa sign-off')
        self.assertEqual(len(records), 1)
        self.assertIsInstance(records[0], TestingPattern)
        self.assertAlmostEqual(records[0].confidence, 0.75)

    def test_modifier_boost(self):
        records = self.matcher.match_testing_patterns('QA passed')
        self.assertAlmostEqual(records[0].confidence, 0.9)

    def test_multi_keyword_boost_one_match_per_keyword(self):
        records = self.matcher.match_testing_patterns('unit test added')
        # 'test' and 'unit test' both hit
        self.assertEqual(len(records), 2)
        for r in records:
            self.assertAlmostEqual(r.confidence, 0.85)

    def test_confidence_capped_at_one(self):
        records = self.matcher.match_infrastructure_patterns('terraform apply and terraform plan, then terraform destroy')
        self.assertTrue(records)
        self.assertTrue(all(r.confidence <= 1.0 for r in records))
        self.assertAlmostEqual(records[0].confidence, 1.0)

    def test_empty_and_whitespace_text(self):
        result = self.matcher.match_all_patterns('   ')
        self.assertEqual(result['total_matches'], 0)
        self.assertEqual(result['overall_confidence'], 0.0)
        self.assertEqual(self.matcher.match_category('infrastructure', ''), [])

    def test_deployment_record_fields(self):
        records = self.matcher.match_deployment_patterns('Hotfix deploy to production completed')
        self.assertTrue(records)
        first = records[0]
        self.assertIsInstance(first, DeploymentPattern)
        self.assertEqual(first.type, 'hotfix')
        self.assertEqual(first.component, 'application')
        self.assertEqual(first.environment, 'production')
        self.assertEqual(first.status, 'completed')

    def test_infrastructure_component_lookup(self):
        records = self.matcher.match_infrastructure_patterns('Updated terraform module for the network')
        terraform = [r for r in records if r.type == 'terraform']
        self.assertTrue(terraform)
        self.assertEqual(terraform[0].component, 'module')
        self.assertEqual(terraform[0].action, 'update')

    def test_match_all_patterns_mean_confidence(self):
        result = self.matcher.match_all_patterns('qa sign-off')
        self.assertEqual(result['total_matches'], 1)
        self.assertAlmostEqual(result['overall_confidence'], 0.75)
        for category in ('infrastructure', 'deployment', 'development', 'database', 'security', 'testing'):
            self.assertIn(category, result)

    def test_extract_context_trims_to_words(self):
        text = ('word ' * 30) + 'terraform' + (' word' * 30)
        context = PatternMatcher.extract_context(text, 'terraform')
        self.assertIn('terraform', context)
        self.assertLessEqual(len(context), 50 * 2 + len('terraform'))
        self.assertFalse(context.startswith('ord'))

    def test_statistics(self):
        stats = self.matcher.get_pattern_statistics()
        self.assertEqual(stats['total_patterns'], 12)
        self.assertEqual(stats['infrastructure_patterns'], 3)
        self.assertEqual(stats['testing_patterns'], 1)
        self.assertEqual(stats['version'], PATTERN_LIBRARY_VERSION)

    def test_custom_registry(self):
        definition = PatternDefinition('Widgets', 'testing', 'widgets', ['widget'], 0.5, [('shiny', 0.2)])
        matcher = PatternMatcher(PatternRegistry([definition], version='test'))
        records = matcher.match_testing_patterns('A shiny widget')
        self.assertEqual(len(records), 1)
        self.assertAlmostEqual(records[0].confidence, 0.7)
        self.assertEqual(matcher.get_pattern_statistics()['version'], 'test')

    def test_default_registry_is_shared(self):
        self.assertIs(default_registry(), default_registry())


if __name__ == '__main__':
    unittest.main()
