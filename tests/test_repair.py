import copy
import sys
import unittest
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from intentgraph.catalog import CatalogUnavailableError, builtin, default_catalog
from intentgraph.workflow.issues import IssueCode, Severity
from intentgraph.workflow.repair import WorkflowRepairer, validate_and_repair

SLACK_PARAMS = {
    "resource": "message",
    "operation": "post",
    "select": "channel",
    "channelId": "alerts",
    "text": "hello",
}

COMPLETE_SETTINGS = {
    "saveExecutionProgress": True,
    "saveManualExecutions": True,
    "saveDataErrorExecution": "all",
    "saveDataSuccessExecution": "all",
    "executionTimeout": 3600,
    "timezone": "UTC",
}


def _valid_graph() -> dict:
    return {
        "name": "Valid",
        "nodes": [
            {
                "id": "trigger-0001",
                "name": "Start",
                "type_id": builtin.MANUAL_TRIGGER,
                "position": [100, 200],
                "parameters": {},
            },
            {
                "id": "slack-00001",
                "name": "Post",
                "type_id": builtin.SLACK,
                "position": [300, 200],
                "parameters": dict(SLACK_PARAMS),
            },
        ],
        "connections": {"trigger-0001": [[{"target_node_id": "slack-00001", "target_input_index": 0}]]},
        "settings": dict(COMPLETE_SETTINGS),
        "static_data": {},
    }


def _messy_graph() -> dict:
    return {
        "name": "Messy",
        "nodes": [
            {"name": "Start", "type_id": builtin.MANUAL_TRIGGER, "position": [0, 0]},
            {"id": 42, "name": "Mail", "type_id": "n8n-nodes-base.emailSend", "position": None},
            {"id": "abc", "name": "Fetch", "type_id": builtin.HTTP_REQUEST, "position": [99999, 5],
             "parameters": {"url": "https://x.test", "body": {"mode": "json", "json": {"a": 1}}}},
            {"id": "untyped-0001", "name": "Mystery", "position": [5]},
            {"id": "untyped-0001", "name": "Mystery Twin", "type_id": "n8n-nodes-base.function",
             "position": [10, 10], "parameters": {"functionCode": "return items;"}},
        ],
        "connections": {
            "Start": [[{"target_node_id": "Mail"}]],
            "42": [[{"target_node_id": "abc"}]],
            "abc": [[{"target_node_id": "Nowhere"}]],
        },
        "settings": None,
        "static_data": None,
    }


class RepairScenarioTests(unittest.TestCase):
    def setUp(self) -> None:
        self.catalog = default_catalog()

    def test_valid_graph_is_a_successful_no_op(self):
        result = validate_and_repair(_valid_graph(), self.catalog)

        self.assertTrue(result.success)
        self.assertEqual(result.issues_found, [])
        self.assertEqual(result.issues_fixed, [])
        self.assertEqual(result.validation_errors, [])
        self.assertEqual(result.repaired.model_dump(), result.original_workflow.model_dump())

    def test_missing_id_and_name_keyed_connection(self):
        graph = _valid_graph()
        del graph["nodes"][0]["id"]
        graph["connections"] = {"Start": [[{"target_node_id": "slack-00001", "target_input_index": 0}]]}

        result = validate_and_repair(graph, self.catalog, auto_fix=True)

        start = result.repaired.nodes[0]
        self.assertIsInstance(start.id, str)
        self.assertGreaterEqual(len(start.id), 8)
        self.assertEqual(list(result.repaired.connections), [start.id])

        fixed = {issue.code for issue in result.issues_fixed}
        self.assertIn(IssueCode.INVALID_NODE_ID, fixed)
        self.assertIn(IssueCode.CONNECTION_REFERENCE, fixed)
        messages = [issue.message for issue in result.issues_fixed]
        self.assertTrue(any(m.startswith("Fixed node ID") for m in messages))
        self.assertTrue(any(m.startswith("Fixed connection reference") for m in messages))
        self.assertEqual(result.errors, [])
        self.assertTrue(result.success)

    def test_dangling_target_is_reported_not_repaired(self):
        graph = _valid_graph()
        graph["connections"]["trigger-0001"][0].append({"target_node_id": "Ghost", "target_input_index": 0})

        result = validate_and_repair(graph, self.catalog, auto_fix=True)

        dangling = [i for i in result.validation_errors if "references non-existent target node" in i.message]
        self.assertEqual(len(dangling), 1)
        self.assertEqual(dangling[0].code, IssueCode.DANGLING_TARGET)
        self.assertEqual(dangling[0].severity, Severity.ERROR)

        slot = result.repaired.connections["trigger-0001"][0]
        self.assertEqual([e.target_node_id for e in slot], ["slack-00001", "Ghost"])
        self.assertFalse(result.success)

    def test_unreachable_node_is_a_warning(self):
        graph = _valid_graph()
        graph["nodes"].append(
            {
                "id": "orphan-0001",
                "name": "Scratch",
                "type_id": builtin.CODE,
                "position": [500, 200],
                "parameters": {"jsCode": "return $input.all();"},
            }
        )

        result = validate_and_repair(graph, self.catalog)

        self.assertEqual(result.errors, [])
        self.assertEqual([i.code for i in result.warnings], [IssueCode.UNREACHABLE_NODE])
        self.assertEqual(result.warnings[0].node_id, "orphan-0001")
        self.assertTrue(result.success)


class RepairBehaviourTests(unittest.TestCase):
    def setUp(self) -> None:
        self.catalog = default_catalog()
        self.repairer = WorkflowRepairer(self.catalog)

    def test_repair_is_idempotent(self):
        first = self.repairer.repair(_messy_graph(), auto_fix=True)
        second = self.repairer.repair(first.repaired, auto_fix=True)

        self.assertTrue(first.issues_fixed)
        self.assertEqual(second.issues_fixed, [])
        self.assertEqual(second.repaired.model_dump(), first.repaired.model_dump())

    def test_repaired_ids_are_unique(self):
        result = self.repairer.repair(_messy_graph(), auto_fix=True)
        ids = [node.id for node in result.repaired.nodes]

        self.assertEqual(len(ids), len(set(ids)))
        self.assertTrue(all(isinstance(i, str) and len(i) >= 8 for i in ids))
        self.assertEqual(ids[3], "untyped-0001")

    def test_replaced_ids_are_followed_by_connections(self):
        result = self.repairer.repair(_messy_graph(), auto_fix=True)
        nodes = result.repaired.nodes
        mail, fetch = nodes[1], nodes[2]

        self.assertEqual(result.id_map, {"42": mail.id, "abc": fetch.id})
        self.assertEqual(result.repaired.connections[nodes[0].id][0][0].target_node_id, mail.id)
        self.assertEqual(result.repaired.connections[mail.id][0][0].target_node_id, fetch.id)
        # The dangling edge moves with its source but keeps its unknown target.
        self.assertEqual(result.repaired.connections[fetch.id][0][0].target_node_id, "Nowhere")
        self.assertEqual(
            [i.code for i in result.errors],
            [IssueCode.DANGLING_TARGET],
        )

    def test_types_parameters_and_settings_are_repaired(self):
        result = self.repairer.repair(_messy_graph(), auto_fix=True)
        start, mail, fetch, untyped, twin = result.repaired.nodes

        self.assertEqual(mail.type_id, builtin.SEND_EMAIL)
        self.assertEqual(mail.parameters["toEmail"], "team@company.com")
        self.assertEqual(untyped.type_id, builtin.GENERIC_STEP)
        self.assertEqual(untyped.parameters["jsCode"], "return $input.all();")
        self.assertEqual(twin.type_id, builtin.CODE)
        self.assertEqual(twin.parameters["functionCode"], "return items;")

        self.assertNotIn("body", fetch.parameters)
        self.assertTrue(fetch.parameters["sendBody"])
        self.assertEqual(fetch.parameters["bodyContentType"], "json")
        self.assertEqual(fetch.parameters["jsonBody"], '{"a": 1}')
        self.assertEqual(fetch.parameters["url"], "https://x.test")
        self.assertEqual(fetch.parameters["method"], "GET")

        self.assertEqual(result.repaired.settings["executionTimeout"], 3600)
        self.assertEqual(result.repaired.static_data, {})

    def test_grid_positions_for_invalid_and_out_of_bounds_nodes(self):
        result = self.repairer.repair(_messy_graph(), auto_fix=True, preserve_complexity=True)
        positions = [node.position for node in result.repaired.nodes]

        self.assertEqual(positions[0], [0, 0])
        self.assertEqual(positions[1], [540, 300])
        self.assertEqual(positions[2], [840, 300])
        self.assertEqual(positions[3], [1140, 300])
        self.assertEqual(positions[4], [10, 10])

    def test_positions_are_only_reported_without_preserve_complexity(self):
        result = self.repairer.repair(_messy_graph(), auto_fix=True, preserve_complexity=False)
        codes = [i.code for i in result.validation_errors]

        self.assertEqual(result.repaired.nodes[2].position, [99999, 5])
        self.assertIn(IssueCode.POSITION_OUT_OF_BOUNDS, codes)
        self.assertIn(IssueCode.INVALID_POSITION, codes)

    def test_report_only_mode_leaves_graph_untouched(self):
        result = self.repairer.repair(_messy_graph(), auto_fix=False)

        self.assertEqual(result.issues_fixed, [])
        self.assertTrue(result.issues_found)
        self.assertEqual(result.repaired.model_dump(), result.original_workflow.model_dump())
        codes = {i.code for i in result.errors}
        self.assertIn(IssueCode.INVALID_NODE_ID, codes)
        self.assertIn(IssueCode.DUPLICATE_NODE_ID, codes)
        self.assertIn(IssueCode.UNKNOWN_TYPE, codes)
        self.assertIn(IssueCode.MISSING_TYPE, codes)
        self.assertFalse(result.success)

    def test_caller_input_is_never_mutated(self):
        graph = _messy_graph()
        snapshot = copy.deepcopy(graph)

        result = self.repairer.repair(graph, auto_fix=True)

        self.assertEqual(graph, snapshot)
        self.assertIsNone(result.original_workflow.nodes[0].id)
        self.assertEqual(result.original_workflow.connections["Start"][0][0].target_node_id, "Mail")

    def test_input_index_must_fit_target_arity(self):
        graph = _valid_graph()
        graph["connections"]["trigger-0001"][0][0]["target_input_index"] = 1
        graph["connections"]["slack-00001"] = [[{"target_node_id": "trigger-0001"}]]

        result = self.repairer.repair(graph)
        out_of_range = [i for i in result.errors if i.code == IssueCode.INPUT_INDEX_OUT_OF_RANGE]

        self.assertEqual(len(out_of_range), 2)

    def test_workflow_level_problems(self):
        result = self.repairer.repair({"name": "  ", "nodes": None, "connections": None}, auto_fix=False)
        codes = [i.code for i in result.errors]

        self.assertEqual(
            codes,
            [IssueCode.MISSING_WORKFLOW_NAME, IssueCode.MISSING_NODES, IssueCode.MISSING_CONNECTIONS],
        )

    def test_required_param_without_default_stays_an_error(self):
        graph = _valid_graph()
        graph["nodes"][1]["type_id"] = builtin.GOOGLE_SHEETS
        graph["nodes"][1]["parameters"] = {"operation": "append", "sheetName": "Leads"}

        result = self.repairer.repair(graph)

        missing = [i for i in result.errors if i.code == IssueCode.MISSING_REQUIRED_PARAMETER]
        self.assertEqual(len(missing), 1)
        self.assertIn("documentId", missing[0].message)
        self.assertIn(IssueCode.MISSING_REQUIRED_PARAMETER, [i.code for i in result.issues_found])

    def test_markdown_report(self):
        report = self.repairer.repair(_messy_graph()).to_markdown()

        self.assertIn("# Repair Report: Messy", report)
        self.assertIn("## Reassigned Node IDs", report)
        self.assertIn("dangling_target", report)

    def test_catalog_is_required(self):
        with self.assertRaises(CatalogUnavailableError):
            WorkflowRepairer(None)

    def test_bundled_catalog_is_the_default(self):
        result = validate_and_repair(_valid_graph())
        self.assertEqual(result.validation_errors, [])

    def test_name_keyed_entry_merged_onto_existing_key_is_checked_once(self):
        graph = _valid_graph()
        graph["connections"] = {
            "Start": [[{"target_node_id": "Ghost"}]],
            "trigger-0001": [[{"target_node_id": "slack-00001"}]],
        }

        result = self.repairer.repair(graph, auto_fix=True)

        slot = result.repaired.connections["trigger-0001"][0]
        self.assertEqual([e.target_node_id for e in slot], ["slack-00001", "Ghost"])
        dangling = [i for i in result.issues_found if i.code == IssueCode.DANGLING_TARGET]
        self.assertEqual(len(dangling), 1)
        self.assertEqual([i.code for i in result.errors], [IssueCode.DANGLING_TARGET])


class MalformedGraphTests(unittest.TestCase):
    def setUp(self) -> None:
        self.repairer = WorkflowRepairer(default_catalog())

    def test_nodes_that_are_not_an_array_are_reported(self):
        for nodes in ("oops", {"id": "trigger-0001"}, ["not a node"]):
            with self.subTest(nodes=nodes):
                result = self.repairer.repair({"name": "x", "nodes": nodes, "connections": {}})

                self.assertEqual([i.code for i in result.errors], [IssueCode.INVALID_NODES])
                self.assertIn(IssueCode.INVALID_NODES, [i.code for i in result.issues_found])
                self.assertEqual(result.repaired.nodes, nodes)

    def test_position_that_is_not_a_list_gets_a_grid_slot(self):
        graph = _valid_graph()
        graph["nodes"][1]["position"] = {"x": 1, "y": 2}

        result = self.repairer.repair(graph, auto_fix=True, preserve_complexity=True)

        self.assertEqual(result.repaired.nodes[1].position, [540, 300])
        self.assertIn(IssueCode.INVALID_POSITION, [i.code for i in result.issues_fixed])
        self.assertEqual(result.validation_errors, [])

    def test_null_output_slot_becomes_an_empty_slot(self):
        graph = _valid_graph()
        graph["connections"]["trigger-0001"].append(None)
        graph["connections"]["slack-00001"] = None

        result = self.repairer.repair(graph, auto_fix=True)

        outputs = result.repaired.connections["trigger-0001"]
        self.assertEqual([e.target_node_id for e in outputs[0]], ["slack-00001"])
        self.assertEqual(outputs[1], [])
        self.assertEqual(result.repaired.connections["slack-00001"], [])
        fixed = [i.code for i in result.issues_fixed]
        self.assertEqual(fixed.count(IssueCode.MALFORMED_CONNECTION), 2)
        self.assertEqual(result.validation_errors, [])

    def test_malformed_slot_is_reported_without_auto_fix(self):
        graph = _valid_graph()
        graph["connections"]["trigger-0001"].append("not-a-slot")

        result = self.repairer.repair(graph, auto_fix=False)

        self.assertEqual([i.code for i in result.errors], [IssueCode.MALFORMED_CONNECTION])
        self.assertEqual(result.repaired.connections["trigger-0001"][1], "not-a-slot")
        self.assertFalse(result.success)

    def test_connections_that_are_not_a_map_are_reported(self):
        graph = _valid_graph()
        graph["connections"] = ["trigger-0001"]

        result = self.repairer.repair(graph, auto_fix=True)

        self.assertEqual([i.code for i in result.errors], [IssueCode.INVALID_CONNECTIONS])
        self.assertEqual([i.code for i in result.warnings], [IssueCode.UNREACHABLE_NODE])
        self.assertEqual(result.repaired.connections, ["trigger-0001"])

    def test_malformed_parameters_and_settings_are_replaced(self):
        graph = _valid_graph()
        graph["nodes"][0]["parameters"] = "oops"
        graph["settings"] = "oops"
        graph["static_data"] = []

        result = self.repairer.repair(graph, auto_fix=True)

        self.assertEqual(result.repaired.nodes[0].parameters, {})
        self.assertEqual(result.repaired.settings, COMPLETE_SETTINGS)
        self.assertEqual(result.repaired.static_data, {})
        fixed = {i.code for i in result.issues_fixed}
        self.assertTrue({IssueCode.MISSING_PARAMETERS, IssueCode.INVALID_SETTINGS, IssueCode.MISSING_STATIC_DATA} <= fixed)
        self.assertEqual(result.validation_errors, [])

    def test_malformed_graph_repair_is_idempotent(self):
        graph = _valid_graph()
        graph["nodes"][1]["position"] = "left"
        graph["connections"]["trigger-0001"].append(None)

        first = self.repairer.repair(graph, auto_fix=True)
        second = self.repairer.repair(first.repaired, auto_fix=True)

        self.assertEqual(second.issues_fixed, [])
        self.assertEqual(second.repaired.model_dump(), first.repaired.model_dump())


if __name__ == "__main__":
    unittest.main()
