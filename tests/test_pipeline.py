import sys
import unittest
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

import intentgraph
from intentgraph.catalog import CatalogProvider, CatalogUnavailableError, builtin, default_catalog
from intentgraph.workflow.pipeline import IntentGraphEngine, generate

SCENARIO = "send a message to slack channel #general every day at 9am"


class CountingProvider(CatalogProvider):
    def __init__(self, catalog=None):
        super().__init__(catalog)
        self.snapshots = 0

    def snapshot(self):
        self.snapshots += 1
        return super().snapshot()


class GeneratePipelineTests(unittest.TestCase):
    def test_daily_slack_message(self):
        result = generate(SCENARIO, "Daily Slack")

        graph = result.graph
        self.assertEqual(len(graph.nodes), 2)
        trigger, slack = graph.nodes
        self.assertEqual(trigger.type_id, builtin.SCHEDULE_TRIGGER)
        self.assertEqual(slack.type_id, builtin.SLACK)

        edges = graph.edges()
        self.assertEqual(len(edges), 1)
        self.assertEqual((edges[0][0], edges[0][2].target_node_id), (trigger.id, slack.id))

        self.assertEqual(result.repair_result.validation_errors, [])
        self.assertEqual(result.repair_result.issues_fixed, [])
        self.assertTrue(result.repair_result.success)
        self.assertEqual(result.intent.actions[0].target, "general")

    def test_package_level_entry_points(self):
        intent = intentgraph.extract(SCENARIO)
        graph = intentgraph.synthesize(intent, "Daily Slack")
        result = intentgraph.validate_and_repair(graph)

        self.assertEqual(result.repaired.model_dump(), graph.model_dump())
        self.assertEqual(intentgraph.generate(SCENARIO, "Daily Slack").graph.model_dump(), graph.model_dump())

    def test_generated_graph_is_stable_under_repair(self):
        result = generate("every 3 hours, if amount greater than 100, format the total and text me", "Ops")
        again = IntentGraphEngine().validate_and_repair(result.graph)

        self.assertEqual(again.issues_fixed, [])
        self.assertEqual(again.repaired.model_dump(), result.graph.model_dump())

    def test_to_dict_is_json_ready(self):
        payload = generate(SCENARIO, "Daily Slack").to_dict()
        self.assertEqual(payload["repair_result"]["validation_errors"], [])
        self.assertEqual(payload["intent"]["triggers"][0]["schedule"], "0 9 * * *")


class EngineTests(unittest.TestCase):
    def test_one_catalog_snapshot_per_call(self):
        provider = CountingProvider(default_catalog())
        engine = IntentGraphEngine(provider)

        engine.generate(SCENARIO, "Daily Slack")

        self.assertEqual(provider.snapshots, 1)

    def test_missing_catalog_is_fatal_except_for_extraction(self):
        engine = IntentGraphEngine(CatalogProvider())

        self.assertEqual(len(engine.extract(SCENARIO).actions), 1)
        with self.assertRaises(CatalogUnavailableError):
            engine.generate(SCENARIO, "Daily Slack")
        with self.assertRaises(CatalogUnavailableError):
            engine.validate_and_repair({"name": "x", "nodes": [], "connections": {}})


if __name__ == "__main__":
    unittest.main()
