import sys
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from intentgraph import main
from intentgraph.catalog import CatalogProvider, builtin
from intentgraph.workflow.pipeline import IntentGraphEngine

SCENARIO = "send a message to slack channel #general every day at 9am"


class ApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self._old_engine = main.engine
        self.client = TestClient(main.app)

    def tearDown(self) -> None:
        main.engine = self._old_engine

    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "ok")
        self.assertTrue(body["catalog_loaded"])
        self.assertGreater(body["catalog_types"], 0)

    def test_catalog_types(self):
        response = self.client.get("/api/catalog/types")
        self.assertEqual(response.status_code, 200)
        entries = {entry["type_id"]: entry for entry in response.json()}
        self.assertEqual(entries[builtin.SLACK]["required_params"], ["channelId", "text"])
        self.assertTrue(entries[builtin.SCHEDULE_TRIGGER]["is_trigger"])

    def test_extract_then_synthesize(self):
        response = self.client.post("/api/intents/extract", json={"description": SCENARIO})
        self.assertEqual(response.status_code, 200)
        intent = response.json()
        self.assertEqual(intent["triggers"][0]["schedule"], "0 9 * * *")

        response = self.client.post("/api/workflows/synthesize", json={"intent": intent, "name": "Daily Slack"})
        self.assertEqual(response.status_code, 200)
        nodes = response.json()["workflow"]["nodes"]
        self.assertEqual([n["type_id"] for n in nodes], [builtin.SCHEDULE_TRIGGER, builtin.SLACK])

    def test_generate(self):
        response = self.client.post("/api/workflows/generate", json={"description": SCENARIO, "name": "Daily Slack"})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(len(body["graph"]["nodes"]), 2)
        self.assertEqual(body["repair_result"]["validation_errors"], [])
        self.assertTrue(body["repair_result"]["success"])

    def test_repair_hand_edited_graph(self):
        workflow = {
            "name": "Hand edited",
            "nodes": [
                {"name": "Start", "type_id": builtin.MANUAL_TRIGGER, "position": [100, 200], "parameters": {}},
                {
                    "id": "slack-00001",
                    "name": "Post",
                    "type_id": builtin.SLACK,
                    "position": [300, 200],
                    "parameters": {"channelId": "alerts", "text": "hello"},
                },
            ],
            "connections": {"Start": [[{"target_node_id": "Post"}]]},
        }
        response = self.client.post("/api/workflows/repair", json={"workflow": workflow})
        self.assertEqual(response.status_code, 200)
        body = response.json()

        fixed_codes = {issue["code"] for issue in body["issues_fixed"]}
        self.assertIn("invalid_node_id", fixed_codes)
        self.assertIn("connection_reference", fixed_codes)
        self.assertIn("missing_settings", fixed_codes)
        self.assertEqual(body["validation_errors"], [])
        self.assertIsNone(body["original_workflow"]["nodes"][0]["id"])

    def test_repair_report_only(self):
        workflow = {"name": "x", "nodes": [{"id": "a", "name": "A"}], "connections": {}}
        response = self.client.post("/api/workflows/repair", json={"workflow": workflow, "auto_fix": False})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["issues_fixed"], [])
        self.assertFalse(body["success"])

    def test_malformed_nodes_are_reported(self):
        response = self.client.post(
            "/api/workflows/repair",
            json={"workflow": {"name": "x", "nodes": "not-a-list", "connections": {"A": [None]}}},
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([i["code"] for i in body["validation_errors"]], ["invalid_nodes"])
        self.assertIn("malformed_connection", [i["code"] for i in body["issues_fixed"]])
        self.assertIn("dangling_source", [i["code"] for i in body["issues_found"]])
        self.assertEqual(body["repaired"]["nodes"], "not-a-list")

    def test_unparseable_workflow_is_rejected(self):
        response = self.client.post("/api/workflows/repair", json={"workflow": {"name": ["not", "a", "name"]}})
        self.assertEqual(response.status_code, 422)

    def test_unavailable_catalog(self):
        main.engine = IntentGraphEngine(CatalogProvider())
        response = self.client.post("/api/workflows/generate", json={"description": SCENARIO, "name": "x"})
        self.assertEqual(response.status_code, 503)


if __name__ == "__main__":
    unittest.main()
