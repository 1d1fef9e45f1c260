import unittest

from perfetto_critpath.selection import Scope, TimeWindow
from perfetto_critpath.variants import (
    PLACEHOLDER_THREAD_NAME,
    QueryVariant,
    SinkKind,
    all_variants,
    get_variant,
    get_variant_for_command,
    register_variant,
)


class TestCatalog(unittest.TestCase):
    def test_five_variants_registered(self):
        ids = [variant.variant_id for variant in all_variants()]
        self.assertEqual(
            ids,
            ["lite-by-slice", "full-by-slice", "lite-by-area", "full-by-area", "graph-by-area"],
        )

    def test_required_modules(self):
        self.assertEqual(get_variant("lite-by-slice").required_module, "sched.thread_executing_span")
        self.assertEqual(get_variant("lite-by-area").required_module, "sched.thread_executing_span")
        for variant_id in ["full-by-slice", "full-by-area", "graph-by-area"]:
            self.assertEqual(
                get_variant(variant_id).required_module,
                "sched.thread_executing_span_with_slice",
            )

    def test_scopes_and_sinks(self):
        self.assertEqual(get_variant("lite-by-slice").scope, Scope.SLICE)
        self.assertEqual(get_variant("full-by-area").scope, Scope.AREA)
        self.assertEqual(get_variant("graph-by-area").sink, SinkKind.QUERY_TAB)
        self.assertEqual(get_variant("full-by-slice").sink, SinkKind.DEBUG_TRACK)

    def test_lookup_by_command_id(self):
        self.assertEqual(get_variant_for_command("perfetto.CriticalPath").variant_id, "full-by-slice")
        self.assertEqual(
            get_variant_for_command("perfetto.CriticalPathPprof_AreaSelection").variant_id,
            "graph-by-area",
        )
        with self.assertRaises(KeyError):
            get_variant_for_command("perfetto.Nope")
        with self.assertRaises(KeyError):
            get_variant("nope")

    def test_duplicate_registration_rejected(self):
        with self.assertRaises(ValueError):
            register_variant(get_variant("lite-by-slice"))

    def test_display_columns_must_be_output_columns(self):
        with self.assertRaises(ValueError):
            QueryVariant(
                variant_id="broken",
                command_id="test.Broken",
                command_name="Broken",
                required_module="sched.thread_executing_span",
                scope=Scope.AREA,
                sink=SinkKind.DEBUG_TRACK,
                query_template=lambda utid, window: "",
                output_column_names=("ts", "dur"),
                display_columns={"timestamp": "ts", "duration": "dur", "label": "name"},
            )

    def test_output_columns_must_be_unique(self):
        with self.assertRaises(ValueError):
            QueryVariant(
                variant_id="broken",
                command_id="test.Broken",
                command_name="Broken",
                required_module="sched.thread_executing_span",
                scope=Scope.AREA,
                sink=SinkKind.QUERY_TAB,
                query_template=lambda utid, window: "",
                output_column_names=("ts", "ts"),
            )


class TestQueries(unittest.TestCase):
    def test_parameters_appear_as_literals(self):
        window = TimeWindow(1_000_123, 9_000_456)
        for variant in all_variants():
            query = variant.build_query(4242, window)
            self.assertIn("4242", query, variant.variant_id)
            self.assertIn("1000123", query, variant.variant_id)
            self.assertIn("9000456 - 1000123", query, variant.variant_id)

    def test_full_variants_filter_unnamed_rows(self):
        window = TimeWindow(0, 10)
        for variant_id in ["full-by-slice", "full-by-area"]:
            variant = get_variant(variant_id)
            self.assertTrue(variant.require_label)
            self.assertIn("WHERE name IS NOT NULL", variant.build_query(1, window))
        for variant_id in ["lite-by-slice", "lite-by-area"]:
            self.assertFalse(get_variant(variant_id).require_label)

    def test_engine_functions(self):
        window = TimeWindow(0, 10)
        self.assertIn(
            "_thread_executing_span_critical_path(",
            get_variant("lite-by-area").build_query(1, window),
        )
        self.assertIn(
            "_thread_executing_span_critical_path_stack(",
            get_variant("full-by-slice").build_query(1, window),
        )
        self.assertIn(
            "10 - 0, 1, 1, 1, 1) cr",
            get_variant("full-by-area").build_query(1, window),
        )
        graph_query = get_variant("graph-by-area").build_query(1, window)
        self.assertIn("_thread_executing_span_critical_path_graph(", graph_query)
        self.assertIn("'critical_path'", graph_query)

    def test_non_integer_parameters_rejected(self):
        variant = get_variant("lite-by-area")
        with self.assertRaises(TypeError):
            variant.build_query("1; DROP TABLE thread", TimeWindow(0, 10))
        with self.assertRaises(TypeError):
            variant.build_query(1, TimeWindow(0, "10"))
        with self.assertRaises(TypeError):
            variant.build_query(True, TimeWindow(0, 10))


class TestImmutability(unittest.TestCase):
    def test_display_columns_are_read_only(self):
        variant = get_variant("lite-by-slice")
        with self.assertRaises(TypeError):
            variant.display_columns["label"] = "process_name"
        self.assertEqual(get_variant("lite-by-area").display_columns["label"], "thread_name")

    def test_variants_do_not_share_mappings(self):
        self.assertIsNot(
            get_variant("lite-by-slice").display_columns,
            get_variant("lite-by-area").display_columns,
        )
        self.assertIsNot(
            get_variant("full-by-slice").display_columns,
            get_variant("full-by-area").display_columns,
        )

    def test_track_spec_gets_its_own_mapping(self):
        variant = get_variant("full-by-area")
        spec = variant.build_track_spec(1, TimeWindow(0, 10), "main")
        spec.display_columns["label"] = "table_name"
        self.assertEqual(variant.display_columns["label"], "name")

    def test_variants_are_hashable(self):
        lookup = {variant: variant.variant_id for variant in all_variants()}
        self.assertEqual(lookup[get_variant("graph-by-area")], "graph-by-area")
        spec = get_variant("lite-by-area").build_track_spec(1, TimeWindow(0, 10), "main")
        self.assertIsInstance(hash(spec), int)


class TestSpecs(unittest.TestCase):
    def test_track_spec_columns_and_roles(self):
        spec = get_variant("lite-by-slice").build_track_spec(3, TimeWindow(0, 10), "RenderThread")
        self.assertEqual(spec.title, "RenderThread")
        self.assertEqual(
            spec.output_column_names,
            ("id", "utid", "ts", "dur", "thread_name", "process_name", "table_name"),
        )
        self.assertEqual(spec.display_columns, {"timestamp": "ts", "duration": "dur", "label": "thread_name"})
        self.assertEqual(spec.label_column, "thread_name")

        spec = get_variant("full-by-area").build_track_spec(3, TimeWindow(0, 10), "main")
        self.assertEqual(spec.output_column_names, ("id", "utid", "ts", "dur", "name", "table_name"))
        self.assertEqual(spec.label_column, "name")
        self.assertTrue(spec.require_label)

    def test_placeholder_title(self):
        spec = get_variant("full-by-slice").build_track_spec(3, TimeWindow(0, 10), None)
        self.assertEqual(spec.title, PLACEHOLDER_THREAD_NAME)

    def test_query_tab_spec(self):
        spec = get_variant("graph-by-area").build_query_tab_spec(3, TimeWindow(5, 10))
        self.assertEqual(spec.title, "Critical path")
        self.assertIn("10 - 5", spec.query)


if __name__ == "__main__":
    unittest.main()
