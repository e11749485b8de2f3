import unittest

from mini_server.exceptions import GenerationError
from mini_server.parser.generation_parser import fold_stream_events, parse_sse_lines, split_generation_output


class TestFoldStreamEvents(unittest.TestCase):
    def test_tokens_are_appended(self):
        text, usage = fold_stream_events(
            [
                {"type": "status", "data": "Generating..."},
                {"type": "token", "text": "function "},
                {"type": "token", "text": "App() {}"},
            ]
        )
        self.assertEqual(text, "function App() {}")
        self.assertIsNone(usage)

    def test_text_and_result_replace_accumulated_output(self):
        text, _ = fold_stream_events(
            [{"type": "token", "text": "partial"}, {"type": "text", "text": "full text"}]
        )
        self.assertEqual(text, "full text")

        text, _ = fold_stream_events([{"type": "token", "text": "partial"}, {"type": "result", "data": "final"}])
        self.assertEqual(text, "final")

    def test_usage_is_recorded(self):
        _, usage = fold_stream_events([{"type": "usage", "input_tokens": 12, "output_tokens": 30}])
        self.assertEqual(usage.input_tokens, 12)
        self.assertEqual(usage.total_tokens, 42)

    def test_incomplete_usage_is_ignored(self):
        _, usage = fold_stream_events([{"type": "usage", "input_tokens": 12}])
        self.assertIsNone(usage)

    def test_error_event_raises(self):
        with self.assertRaises(GenerationError) as ctx:
            fold_stream_events([{"type": "token", "text": "x"}, {"type": "error", "data": "overloaded"}])
        self.assertEqual(ctx.exception.message, "overloaded")


class TestParseSseLines(unittest.TestCase):
    def test_decodes_data_lines_until_done(self):
        lines = [
            "event: message",
            'data: {"type": "token", "text": "a"}',
            "",
            "data: not json",
            'data: {"type": "token", "text": "b"}',
            "data: [DONE]",
            'data: {"type": "token", "text": "after"}',
        ]
        events = list(parse_sse_lines(lines))
        self.assertEqual([e["text"] for e in events], ["a", "b"])

    def test_feeds_fold(self):
        lines = ['data: {"type": "token", "text": "hello "}', 'data: {"type": "token", "text": "world"}']
        self.assertEqual(fold_stream_events(parse_sse_lines(lines))[0], "hello world")


class TestSplitGenerationOutput(unittest.TestCase):
    def test_extracts_metadata_and_strips_it_from_code(self):
        output = (
            "function Todo() {}\nreturn Todo;\n"
            "---METADATA---\n"
            '{"name": "Todo", "description": "Tasks", "icon": "✅", "price": 1.5, "version": "2.0.0"}\n'
            "---END-METADATA---\n"
        )
        source, metadata = split_generation_output(output)

        self.assertEqual(source, "function Todo() {}\nreturn Todo;")
        self.assertEqual(metadata.name, "Todo")
        self.assertEqual(metadata.icon, "✅")
        self.assertEqual(metadata.price, 1.5)
        self.assertEqual(metadata.version, "2.0.0")

    def test_partial_metadata_merges_over_defaults(self):
        _, metadata = split_generation_output('code\n---METADATA---{"name": "Only Name", "version": 2}---END-METADATA---')
        self.assertEqual(metadata.name, "Only Name")
        self.assertEqual(metadata.description, "AI-generated application")
        self.assertEqual(metadata.icon, "🪄")
        self.assertEqual(metadata.version, "2")

    def test_missing_metadata_uses_defaults(self):
        source, metadata = split_generation_output("  return App;  ")
        self.assertEqual(source, "return App;")
        self.assertEqual(metadata.name, "Generated App")
        self.assertEqual(metadata.price, 0)
        self.assertEqual(metadata.version, "1.0.0")

    def test_malformed_metadata_uses_defaults(self):
        source, metadata = split_generation_output("code\n---METADATA---{not json---END-METADATA---")
        self.assertEqual(source, "code")
        self.assertEqual(metadata.name, "Generated App")

    def test_every_metadata_block_is_removed(self):
        output = '---METADATA---{"name": "A"}---END-METADATA---code---METADATA---{}---END-METADATA---'
        source, metadata = split_generation_output(output)
        self.assertEqual(source, "code")
        self.assertEqual(metadata.name, "A")
