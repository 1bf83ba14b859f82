import unittest

from errors import StandupError
from synthesis.fallback import FallbackSupervisor, classify_severity, is_recoverable
from synthesis.observer import DebugObserver
from tracker.models import Comment, Issue


class TestClassification(unittest.TestCase):
    def test_severity_rules(self):
        self.assertEqual(classify_severity('fatal: out of memory'), 'critical')
        self.assertEqual(classify_severity('connection refused'), 'high')
        self.assertEqual(classify_severity('parsing failed'), 'medium')
        self.assertEqual(classify_severity('something odd'), 'low')

    def test_recoverability(self):
        self.assertFalse(is_recoverable('panic in worker'))
        self.assertFalse(is_recoverable('authentication rejected'))
        self.assertTrue(is_recoverable('connection refused'))


class TestStrategies(unittest.TestCase):
    def setUp(self):
        self.issues = [Issue('DEV-1', summary='Deploy', status='Done'), Issue('DEV-2', summary='Migrate', status='Done')]

    def test_strict_reports_failure(self):
        result = FallbackSupervisor('strict').handle_processing_error(RuntimeError('boom'), 'ctx', self.issues)
        self.assertFalse(result.success)
        self.assertIsNone(result.result)
        self.assertEqual(result.original_error.message, 'boom')

    def test_minimal_placeholder(self):
        sup = FallbackSupervisor('minimal')
        self.assertEqual(sup.handle_processing_error(RuntimeError('x'), '', self.issues).result, 'Issue activity detected')
        self.assertEqual(sup.handle_processing_error(RuntimeError('x'), '', [Comment('1', 'hi')]).result, 'Comment activity detected')
        self.assertEqual(sup.handle_processing_error(RuntimeError('x'), '', 'text').result, 'Text content available')

    def test_graceful_tiers(self):
        sup = FallbackSupervisor('graceful')
        basic = sup.handle_processing_error(RuntimeError('x'), '', self.issues)
        self.assertEqual((basic.success, basic.result, basic.fallback_used, basic.quality), (True, 'Basic processing of 2 issues', 'basic_processing', 'medium'))

        metadata = sup.handle_processing_error(RuntimeError('x'), '', [Issue('DEV-3', status='Done'), Issue('DEV-4', status='Done')])
        self.assertEqual((metadata.result, metadata.fallback_used, metadata.quality), ('Issues: 2 Done', 'metadata_processing', 'low'))

        minimal = sup.handle_processing_error(RuntimeError('x'), '', {'unexpected': True})
        self.assertTrue(minimal.success)
        self.assertEqual((minimal.result, minimal.fallback_used), ('Activity detected', 'minimal_safe'))

    def test_graceful_always_succeeds(self):
        sup = FallbackSupervisor('graceful')
        for data in (self.issues, [Comment('1', '')], '', 'some words here', 42, [Issue('X-1')]):
            self.assertTrue(sup.handle_processing_error(RuntimeError('x'), '', data).success)

    def test_unknown_strategy_defaults_to_graceful(self):
        self.assertEqual(FallbackSupervisor('bogus').strategy, 'graceful')


class TestSpecialisedHandlers(unittest.TestCase):
    def setUp(self):
        self.sup = FallbackSupervisor('graceful')

    def test_summary_timeout(self):
        result = self.sup.handle_summary_error(RuntimeError('request timeout'), 'one two three four five six seven')
        self.assertEqual(result.result, 'one two three four five (processing timeout)')
        self.assertEqual(result.fallback_used, 'timeout_fallback')

    def test_summary_empty(self):
        result = self.sup.handle_summary_error(RuntimeError('empty summary'), '')
        self.assertEqual(result.result, 'No content available for summary')

    def test_summary_generic_uses_first_sentence(self):
        result = self.sup.handle_summary_error(RuntimeError('odd'), 'First sentence. Second one.')
        self.assertEqual(result.result, 'First sentence.')

    def test_comment_handler(self):
        comments = [Comment('1', 'Rolled out the new ingress controller to staging today'), Comment('2', 'ok')]
        result = self.sup.handle_comment_processing_error(RuntimeError('x'), comments)
        self.assertEqual(result.result, '2 comments added - Rolled out the new ingress...')
        self.assertEqual(self.sup.handle_comment_processing_error(RuntimeError('x'), []).result, 'No comments to process')

    def test_pattern_matching_handler(self):
        result = self.sup.handle_pattern_matching_error(RuntimeError('x'), 'Terraform and AWS changes')
        self.assertEqual(result.result, {'matched_keywords': ['terraform', 'aws'], 'confidence': 0.5})

    def test_validate_input(self):
        self.assertIsInstance(self.sup.validate_input([Issue('')]), StandupError)
        self.assertIsInstance(self.sup.validate_input([Comment('', 'x')]), StandupError)
        self.assertIsInstance(self.sup.validate_input('   '), StandupError)
        self.assertIsNone(self.sup.validate_input([Issue('DEV-1')]))

    def test_statistics_and_observer_warnings(self):
        observer = DebugObserver(enabled=True)
        sup = FallbackSupervisor('graceful', observer)
        sup.handle_processing_error(RuntimeError('connection reset'), '', 'x')
        sup.handle_summary_error(RuntimeError('x'), 'y')
        stats = sup.get_error_statistics()
        self.assertEqual(stats['total_errors'], 2)
        self.assertEqual(stats['by_type'], {'processing_error': 1, 'summary_error': 1})
        self.assertEqual([w.type for w in observer.warnings], ['processing_error', 'summary_error'])
        self.assertEqual(observer.warnings[0].severity, 'high')


if __name__ == '__main__':
    unittest.main()
