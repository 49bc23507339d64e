"""
Tests for the merge engine.

The source and target fixtures are described in tests/builders.py. Most tests
merge stack {A} of the source, which calls the "move" procedure, into a target
that already has a stack {A} and a "move" procedure with other argument ids.
"""

import random
import unittest

from lmsp.errors import AmbiguousNameError, UnresolvedReferenceError
from lmsp.merge import MergeEngine, RecordingMergeReporter
from lmsp.models import MergeOperation
from lmsp.project import ProjectInfo

from tests.builders import MOVE, source_project, target_project


def blocks_by_opcode(document, opcode):
    return [(block_id, block) for block_id, block in document.blocks.items() if block.opcode == opcode]


def single_block(document, opcode):
    matches = blocks_by_opcode(document, opcode)
    assert len(matches) == 1, f"expected one {opcode} block, found {len(matches)}"
    return matches[0]


def single_block_with_proccode(document, proccode, excluding_inputs=None):
    """The one procedures_call of proccode whose inputs differ from excluding_inputs."""
    matches = [
        (block_id, block) for block_id, block in blocks_by_opcode(document, "procedures_call")
        if block.proccode == proccode
        and not (excluding_inputs and all(block.inputs.get(k) == v for k, v in excluding_inputs.items()))
    ]
    assert len(matches) == 1, f"expected one call of {proccode}, found {len(matches)}"
    return matches[0]


class MergeTestCase(unittest.TestCase):
    """Shared fixtures: a recording listener and a seeded engine."""

    def setUp(self):
        self.source = source_project().document()
        self.target = target_project().document()
        self.reporter = RecordingMergeReporter()
        self.engine = MergeEngine(listener=self.reporter, rng=random.Random(42))

    def merge(self, *identifiers):
        info = ProjectInfo(self.source)
        stacks = [info.stacks_by_name(name)[0] for name in identifiers]
        return self.engine.merge(self.source, self.target, stacks)


class TestSymbolMerge(MergeTestCase):
    """Test variables, lists and broadcasts are linked or copied by name."""

    def test_missing_variable_is_copied_under_a_new_id(self):
        self.merge("A")

        copied = [vid for vid, data in self.target.variables.items() if data[0] == "x"]
        self.assertEqual(len(copied), 1)
        self.assertNotEqual(copied[0], "v1")
        self.assertEqual(self.target.variables[copied[0]], ["x", 0])

        _, set_block = single_block(self.target, "data_setvariableto")
        self.assertEqual(set_block.fields["VARIABLE"], ["x", copied[0]])

        _, call = single_block_with_proccode(self.target, MOVE, excluding_inputs={"a1": [1, [4, "5"]]})
        self.assertEqual(call.inputs["a2"][1], [12, "x", copied[0]])

    def test_existing_variable_is_linked(self):
        self.merge("A")

        speeds = [vid for vid, data in self.target.variables.items() if data[0] == "speed"]
        self.assertEqual(speeds, ["tv_speed"])
        self.assertEqual(self.target.variables["tv_speed"], ["speed", 42])

        _, body = single_block(self.target, "data_changevariableby")
        self.assertEqual(body.fields["VARIABLE"], ["speed", "tv_speed"])

    def test_list_is_copied(self):
        self.merge("A")

        self.assertEqual(len(self.target.lists), 1)
        list_id, data = next(iter(self.target.lists.items()))
        self.assertEqual(data, ["log", ["start"]])

        _, add = single_block(self.target, "data_addtolist")
        self.assertEqual(add.fields["LIST"], ["log", list_id])

    def test_broadcast_is_linked_by_full_name(self):
        self.merge("A")

        self.assertEqual(self.target.broadcasts, {"tb_go": "go", "tb_stop": "stop"})
        _, bcast = single_block(self.target, "event_broadcast")
        self.assertEqual(bcast.inputs["BROADCAST_INPUT"], [1, [11, "go", "tb_go"]])

    def test_existing_list_is_linked(self):
        builder = target_project()
        builder.list("tl_log", "log", ["kept"])
        self.target = builder.document()

        self.merge("A")

        self.assertEqual(self.target.lists, {"tl_log": ["log", ["kept"]]})
        _, add = single_block(self.target, "data_addtolist")
        self.assertEqual(add.fields["LIST"], ["log", "tl_log"])
        self.assertIn((MergeOperation.LINK, "list", "log"),
                      [(d.operation, d.kind, d.name) for d in self.reporter.decisions])

    def test_missing_broadcast_is_copied_into_the_stage(self):
        builder = source_project()
        builder.broadcast("b9", "launch")
        builder.block("rx", "event_whenbroadcastreceived", top_level=True, x=40, y=60,
                      fields={"BROADCAST_OPTION": ["launch", "b9"]})
        self.source = builder.document()

        self.engine.merge(self.source, self.target, [ProjectInfo(self.source).stack_for_block("rx")])

        added = {bid: name for bid, name in self.target.globals.broadcasts.items()
                 if bid not in ("tb_go", "tb_stop")}
        self.assertEqual(list(added.values()), ["launch"])
        (launch_id,) = added
        self.assertNotEqual(launch_id, "b9")
        self.assertEqual(self.target.program.broadcasts, {})

        receivers = [block for block_id, block in blocks_by_opcode(self.target, "event_whenbroadcastreceived")
                     if block_id != "t_b_hat"]
        self.assertEqual(len(receivers), 1)
        self.assertEqual(receivers[0].fields["BROADCAST_OPTION"], ["launch", launch_id])

    def test_decisions_are_reported_in_order(self):
        self.merge("A")

        self.assertEqual(
            [(d.operation, d.kind, d.name) for d in self.reporter.decisions],
            [
                (MergeOperation.COPY, "variable", "x"),
                (MergeOperation.LINK, "variable", "speed"),
                (MergeOperation.COPY, "list", "log"),
                (MergeOperation.LINK, "broadcast", "go"),
                (MergeOperation.DELETE, "stack", "A"),
                (MergeOperation.COPY, "stack", "A"),
                (MergeOperation.DELETE, "procedure", MOVE),
                (MergeOperation.COPY, "procedure", MOVE),
            ]
        )
        self.assertEqual(len(self.reporter.by_operation("DELETE")), 2)


class TestStackReplacement(MergeTestCase):
    """Test stacks and procedures replace their namesakes in place."""

    def test_replaced_stack_takes_the_old_position(self):
        self.merge("A")

        self.assertNotIn("t_hat", self.target.blocks)
        self.assertNotIn("t_a_call", self.target.blocks)
        self.assertNotIn("t_c_hat", self.target.comments)

        _, hat = single_block(self.target, "event_whenflagclicked")
        self.assertEqual((hat.x, hat.y), (300, 400))
        self.assertTrue(hat.top_level)

    def test_replaced_procedure_takes_the_old_position(self):
        self.merge("A")

        for old_id in ("t_def", "t_proto", "t_body"):
            self.assertNotIn(old_id, self.target.blocks)
        self.assertNotIn("t_c_body", self.target.comments)

        _, definition = single_block(self.target, "procedures_definition")
        self.assertEqual((definition.x, definition.y), (900, 700))

    def test_untouched_stacks_survive(self):
        self.merge("A")

        self.assertIn("t_b_hat", self.target.blocks)
        self.assertEqual(self.target.comments["t_c_b"].text, "{B}")
        self.assertEqual((self.target.comments["t_c_b"].x, self.target.comments["t_c_b"].y), (25, 10))
        self.assertIn("t_free", self.target.comments)

    def test_existing_calls_follow_the_new_argument_ids(self):
        self.merge("A")

        call = self.target.blocks.get("t_b_call")
        self.assertEqual(call.inputs, {"a1": [1, [4, "5"]], "a2": [1, [4, "7"]]})
        self.assertEqual(call.mutation.argument_ids, ["a1", "a2"])
        self.assertEqual(call.mutation.argumentids, '["a1", "a2"]')

        _, prototype = single_block(self.target, "procedures_prototype")
        self.assertEqual(prototype.mutation.argument_ids, ["a1", "a2"])

    def test_block_structure_is_rebuilt(self):
        self.merge("A")

        hat_id, hat = single_block(self.target, "event_whenflagclicked")
        set_id, set_block = single_block(self.target, "data_setvariableto")
        def_id, definition = single_block(self.target, "procedures_definition")
        proto_id, prototype = single_block(self.target, "procedures_prototype")

        self.assertEqual(hat.next, set_id)
        self.assertEqual(set_block.parent, hat_id)
        self.assertEqual(self.target.blocks.preceding(set_id), hat_id)
        self.assertEqual(definition.inputs["custom_block"], [1, proto_id])
        self.assertEqual(self.target.blocks.enclosing(proto_id), def_id)
        self.assertEqual(self.target.blocks.root_of(set_id), hat_id)

    def test_block_counts(self):
        self.merge("A")

        # 7 target blocks, 5 replaced, 8 copied
        self.assertEqual(len(self.target.blocks), 10)
        self.assertEqual(len(self.target.comments), 4)

    def test_ids_stay_unique(self):
        self.merge("A")

        ids = (
            list(self.target.blocks.all_ids())
            + list(self.target.variables)
            + list(self.target.lists)
            + list(self.target.broadcasts)
            + list(self.target.comments)
        )
        self.assertEqual(len(ids), len(set(ids)))

    def test_generated_ids_use_configured_shape(self):
        engine = MergeEngine(listener=self.reporter, id_length=8, alphabet="abc",
                             rng=random.Random(1))
        before = self.target.all_ids()

        engine.merge(self.source, self.target, [ProjectInfo(self.source).stack_by_index(3)])

        (new_id,) = self.target.all_ids() - before
        self.assertEqual(len(new_id), 8)
        self.assertTrue(set(new_id) <= set("abc"))

    def test_unnamed_stack_is_never_replaced(self):
        info = ProjectInfo(self.source)
        lonely = info.stack_by_index(3)

        self.engine.merge(self.source, self.target, [lonely])
        self.engine.merge(source_project().document(), self.target, [lonely])

        self.assertEqual(len(blocks_by_opcode(self.target, "event_whenkeypressed")), 2)
        self.assertEqual(self.reporter.by_operation("DELETE"), [])


class TestCommentPositions(MergeTestCase):
    """Test attached comments keep their offset from the stack root."""

    def test_comment_follows_replaced_root(self):
        self.merge("A")

        _, hat = single_block(self.target, "event_whenflagclicked")
        comment = self.target.comments[hat.comment]
        self.assertEqual(comment.text, "{A} main loop")
        self.assertEqual((comment.x, comment.y), (350, 380))
        self.assertEqual(comment.block_id, single_block(self.target, "event_whenflagclicked")[0])
        self.assertFalse(comment.relative)

    def test_comment_inside_procedure_body(self):
        self.merge("A")

        body_id, body = single_block(self.target, "data_changevariableby")
        comment = self.target.comments[body.comment]
        self.assertEqual(comment.text, "accelerate")
        self.assertEqual(comment.block_id, body_id)
        self.assertEqual((comment.x, comment.y), (920, 740))

    def test_serialized_comments_carry_no_transient_state(self):
        self.merge("A")

        for comment in self.target.to_json_data()["targets"][1]["comments"].values():
            self.assertEqual(
                set(comment),
                {"blockId", "x", "y", "width", "height", "minimized", "text"}
            )


class TestMergeFailures(MergeTestCase):
    """Test failed merges raise before the target is modified."""

    def assert_target_unchanged(self, before):
        self.assertEqual(self.target.to_json_data(), before)

    def test_ambiguous_variable(self):
        builder = target_project()
        builder.variable("tx1", "x").variable("tx2", "x")
        self.target = builder.document()
        before = self.target.to_json_data()

        with self.assertRaises(AmbiguousNameError) as ctx:
            self.merge("A")

        self.assertEqual(ctx.exception.kind, "variable")
        self.assertEqual(sorted(ctx.exception.candidates), ["tx1", "tx2"])
        self.assert_target_unchanged(before)

    def test_ambiguous_list(self):
        builder = target_project()
        builder.list("tl1", "log").list("tl2", "log")
        self.target = builder.document()
        before = self.target.to_json_data()

        with self.assertRaises(AmbiguousNameError) as ctx:
            self.merge("A")

        self.assertEqual(ctx.exception.kind, "list")
        self.assertEqual(sorted(ctx.exception.candidates), ["tl1", "tl2"])
        self.assert_target_unchanged(before)

    def test_ambiguous_broadcast(self):
        builder = target_project()
        builder.broadcast("tb_go2", "go")
        self.target = builder.document()
        before = self.target.to_json_data()

        with self.assertRaises(AmbiguousNameError) as ctx:
            self.merge("A")

        self.assertEqual(ctx.exception.kind, "broadcast")
        self.assertEqual(sorted(ctx.exception.candidates), ["tb_go", "tb_go2"])
        self.assert_target_unchanged(before)

    def test_ambiguous_stack_name(self):
        builder = target_project()
        builder.block("t_dup", "event_whenflagclicked", top_level=True, comment="t_c_dup")
        builder.comment("t_c_dup", "{A} copy", block_id="t_dup")
        self.target = builder.document()
        before = self.target.to_json_data()

        with self.assertRaises(AmbiguousNameError):
            self.merge("A")

        self.assert_target_unchanged(before)

    def test_ambiguous_procedure(self):
        builder = target_project()
        builder.procedure("t_def2", "t_proto2", MOVE, ["tb1", "tb2"], x=0, y=0)
        self.target = builder.document()
        before = self.target.to_json_data()

        with self.assertRaises(AmbiguousNameError) as ctx:
            self.merge("A")

        self.assertEqual(ctx.exception.kind, "procedure")
        self.assert_target_unchanged(before)

    def test_block_outside_the_closure(self):
        builder = source_project()
        builder.block("stray", "control_wait", next="set", top_level=True)
        self.source = builder.document()
        before = self.target.to_json_data()

        with self.assertRaises(UnresolvedReferenceError):
            self.engine.merge(self.source, self.target, [ProjectInfo(self.source).stack_for_block("stray")])

        self.assert_target_unchanged(before)


class TestDeterminism(unittest.TestCase):
    """Test a seeded random source gives reproducible output."""

    def run_merge(self, seed):
        source = source_project().document()
        target = target_project().document()
        engine = MergeEngine(listener=RecordingMergeReporter(), rng=random.Random(seed))
        engine.merge(source, target, [ProjectInfo(source).stack_by_index(1)])
        return target.to_json_data()

    def test_same_seed_same_output(self):
        self.assertEqual(self.run_merge(7), self.run_merge(7))


if __name__ == '__main__':
    unittest.main()
