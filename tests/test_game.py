import random
import unittest

from paperio.game_engine import Game, Status, default_spawns
from paperio.geometry import Cell, Direction

UP, DOWN, LEFT, RIGHT = Direction.UP, Direction.DOWN, Direction.LEFT, Direction.RIGHT

# Player 1 starts at (9,9) heading left. This walks a loop
# (7,9) -> (7,12) -> (11,12) -> (11,8) and steps back in at (10,8).
# 12 trace cells, enclosing the free cells (8,11), (9,11), (10,11).
LOOP = [None, None, UP, None, None, RIGHT, None, None, None, DOWN, None, None, None, LEFT]


def play(game, player_id, directions):
    for d in directions:
        if d is not None:
            game.try_change_direction(player_id, d)
        game.tick()


def assert_field_consistent(test, game):
    field = game.field
    seen_captured = {}
    seen_traced = {}
    for pid in game.players.ids():
        captured = set(field.captured_cells(pid))
        traced = set(field.traced_cells(pid))
        test.assertFalse(captured & traced, f"player {pid} traces its own territory")
        for c in captured:
            test.assertNotIn(c, seen_captured)
            seen_captured[c] = pid
        for c in traced:
            test.assertNotIn(c, seen_traced)
            seen_traced[c] = pid

    for c in field.iter_cells():
        test.assertEqual(field.captured_by(c), seen_captured.get(c))
        test.assertEqual(field.traced_by(c), seen_traced.get(c))


class TestGameSetup(unittest.TestCase):
    def test_initial_state(self):
        game = Game(4)

        self.assertEqual(game.tick_num, 1)
        self.assertEqual(len(game.players), 4)
        self.assertEqual(game.players[1].position, Cell(9, 9))
        self.assertEqual(game.players[2].position, Cell(21, 21))
        self.assertEqual(game.players[1].direction, LEFT)
        self.assertEqual(game.alive_ids(), [1, 2, 3, 4])
        for pid in game.players.ids():
            self.assertEqual(len(game.field.captured_cells(pid)), 9)
            self.assertEqual(game.field.traced_cells(pid), [])
        assert_field_consistent(self, game)

    def test_default_spawns_follow_grid_size(self):
        self.assertEqual(
            default_spawns(31, 31),
            [Cell(9, 9), Cell(21, 21), Cell(9, 21), Cell(21, 9)],
        )
        self.assertEqual(default_spawns(6, 6)[:2], [Cell(1, 1), Cell(4, 4)])

    def test_game_params(self):
        game = Game(2, width=15, height=11)
        self.assertEqual(game.get_game_params(), {"x_cells_count": 15, "y_cells_count": 11})


class TestDirection(unittest.TestCase):
    def test_reverse_is_rejected(self):
        game = Game(1)
        self.assertTrue(game.try_change_direction(1, UP))
        self.assertFalse(game.try_change_direction(1, DOWN))
        self.assertEqual(game.players[1].direction, UP)

    def test_same_and_side_turns_are_accepted(self):
        game = Game(1)
        self.assertTrue(game.try_change_direction(1, LEFT))
        self.assertTrue(game.try_change_direction(1, DOWN))
        self.assertEqual(game.players[1].direction, DOWN)

    def test_no_request_keeps_heading(self):
        game = Game(1)
        game.tick()
        game.tick()
        self.assertEqual(game.players[1].position, Cell(7, 9))
        self.assertEqual(game.players[1].direction, LEFT)


class TestMovementAndCapture(unittest.TestCase):
    def test_moving_inside_territory_changes_nothing(self):
        game = Game(1)
        territory = sorted(game.field.captured_cells(1))

        play(game, 1, [None, UP, RIGHT, DOWN])

        self.assertEqual(game.players[1].position, Cell(9, 9))
        self.assertEqual(game.players[1].score, 0)
        self.assertEqual(sorted(game.field.captured_cells(1)), territory)
        self.assertEqual(game.field.traced_cells(1), [])
        self.assertEqual(game.tick_num, 5)

    def test_leaving_territory_leaves_a_trace(self):
        game = Game(1)
        play(game, 1, [None, None, UP])

        self.assertEqual(sorted(game.field.traced_cells(1)), [Cell(7, 9), Cell(7, 10)])
        self.assertTrue(game.field.is_traced_by(Cell(7, 10), 1))
        self.assertFalse(game.field.is_captured_by(Cell(7, 10), 1))

    def test_closed_loop_captures_trace_and_enclosed_area(self):
        game = Game(1)
        play(game, 1, LOOP[:-1])
        trace = set(game.field.traced_cells(1))
        self.assertEqual(len(trace), 12)

        game.try_change_direction(1, LEFT)
        game.tick()

        territory = set(game.field.captured_cells(1))
        enclosed = {Cell(8, 11), Cell(9, 11), Cell(10, 11)}
        self.assertEqual(game.players[1].score, 12 + 3)
        self.assertEqual(len(territory), 9 + 12 + 3)
        self.assertTrue(trace <= territory)
        self.assertTrue(enclosed <= territory)
        self.assertEqual(game.field.traced_cells(1), [])
        self.assertEqual(game.players[1].position, Cell(10, 8))
        assert_field_consistent(self, game)

    def test_capture_eliminates_enemy_standing_inside(self):
        game = Game(2)
        play(game, 1, LOOP[:-1])
        self.assertEqual(game.alive_ids(), [1, 2])

        # Drop player 2 into the pocket right before the loop closes.
        game.players[2].position = Cell(9, 11)
        game.try_change_direction(1, LEFT)
        game.tick()

        self.assertTrue(game.has_lost(2))
        self.assertEqual(game.field.captured_cells(2), [])
        self.assertEqual(game.field.traced_cells(2), [])
        self.assertEqual(game.players[1].score, 15)
        self.assertEqual(game.leader_id(), 1)
        assert_field_consistent(self, game)


    def test_enclosed_enemy_cells_score_five_times(self):
        game = Game(2)
        # One of the three pocket cells belongs to player 2.
        game.field.set_captured(Cell(9, 11), 2)

        play(game, 1, LOOP)

        self.assertEqual(game.players[1].score, 12 + 2 + 5 * 1)
        self.assertTrue(game.field.is_captured_by(Cell(9, 11), 1))
        self.assertNotIn(Cell(9, 11), game.field.captured_cells(2))
        self.assertFalse(game.has_lost(2))
        assert_field_consistent(self, game)


class TestEliminations(unittest.TestCase):
    def test_leaving_the_grid(self):
        game = Game(1, width=6, height=6)
        game.tick()
        self.assertEqual(game.players[1].position, Cell(0, 1))
        game.tick()

        self.assertTrue(game.has_lost(1))
        self.assertEqual(game.statuses[1], Status.LOST)
        self.assertEqual(game.field.captured_cells(1), [])
        self.assertEqual(game.players[1].position, Cell(0, 1))

    def test_crossing_own_trace(self):
        game = Game(1)
        play(game, 1, [None, None, None, UP, RIGHT])
        self.assertFalse(game.has_lost(1))

        game.try_change_direction(1, DOWN)
        game.tick()  # back onto (7,9)

        self.assertTrue(game.has_lost(1))
        self.assertEqual(game.field.captured_cells(1), [])
        self.assertEqual(game.field.traced_cells(1), [])

    def test_head_to_head_on_free_cell_both_lose(self):
        def run():
            game = Game(2, width=11, height=5, spawns=[Cell(8, 2), Cell(2, 2)])
            game.players[2].direction = RIGHT
            for _ in range(3):
                game.tick()
            return game

        game = run()
        # Both stepped into (5,2) on the third tick.
        self.assertTrue(game.has_lost(1))
        self.assertTrue(game.has_lost(2))
        self.assertEqual(game.alive_ids(), [])
        self.assertEqual(game.get_spectator_world(), run().get_spectator_world())

    def test_head_to_head_owner_wins(self):
        game = Game(2, width=11, height=5, spawns=[Cell(2, 2), Cell(8, 2)])
        game.players[1].direction = RIGHT
        game.players[2].position = Cell(4, 2)

        game.tick()  # both into (3,2), owned by player 1

        self.assertFalse(game.has_lost(1))
        self.assertTrue(game.has_lost(2))
        self.assertEqual(game.players[1].position, Cell(3, 2))
        self.assertEqual(game.field.captured_cells(2), [])

    def test_crossing_enemy_trace_cuts_it(self):
        game = Game(2, width=15, height=9, spawns=[Cell(2, 2), Cell(10, 2)])
        game.try_change_direction(1, UP)
        for _ in range(3):
            game.tick()
        self.assertEqual(sorted(game.field.traced_cells(1)), [Cell(2, 4), Cell(2, 5)])

        game.players[2].position = Cell(1, 5)
        game.players[2].direction = RIGHT
        game.tick()

        self.assertTrue(game.has_lost(1))
        self.assertFalse(game.has_lost(2))
        self.assertEqual(game.field.traced_by(Cell(2, 5)), 2)
        self.assertEqual(game.field.captured_cells(1), [])
        assert_field_consistent(self, game)

    def test_crossing_each_other_in_one_tick_both_lose(self):
        game = Game(2, width=15, height=9, spawns=[Cell(2, 2), Cell(10, 2)])
        # Player 1 at (4,5) heads onto player 2's line at (5,5) while
        # player 2 at (5,6) heads onto player 1's line at (4,6).
        for c in (Cell(4, 6), Cell(4, 5)):
            game.field.set_traced(c, 1)
        for c in (Cell(5, 5), Cell(5, 6)):
            game.field.set_traced(c, 2)
        game.players[1].position = Cell(4, 5)
        game.players[1].direction = RIGHT
        game.players[2].position = Cell(5, 6)

        game.tick()

        self.assertTrue(game.has_lost(1))
        self.assertTrue(game.has_lost(2))
        self.assertEqual(game.field.traced_cells(1), [])
        self.assertEqual(game.field.traced_cells(2), [])
        assert_field_consistent(self, game)

    def test_eliminate(self):
        game = Game(2)
        score_before = game.players[2].score
        game.eliminate(2)
        game.eliminate(2)

        self.assertTrue(game.has_lost(2))
        self.assertEqual(game.field.captured_cells(2), [])
        position = game.players[2].position
        game.tick()
        self.assertEqual(game.players[2].position, position)
        self.assertEqual(game.players[2].score, score_before)
        self.assertEqual(game.alive_ids(), [1])


class TestProjections(unittest.TestCase):
    def test_player_world_marks_viewer(self):
        game = Game(2)
        world = game.get_player_world(2)

        self.assertEqual(world["tick_num"], 1)
        self.assertEqual(set(world["players"]), {"1", "i"})
        me = world["players"]["i"]
        self.assertEqual(me["position"], [21, 21])
        self.assertEqual(me["direction"], "left")
        self.assertEqual(me["lines"], [])
        self.assertEqual(len(me["territory"]), 9)
        self.assertFalse(me["has_lost"])

    def test_spectator_world_has_no_viewer(self):
        game = Game(3)
        self.assertEqual(set(game.get_spectator_world()["players"]), {"1", "2", "3"})

    def test_player_world_is_idempotent(self):
        game = Game(2)
        play(game, 1, [None, None, UP])
        first = game.get_player_world(1)
        first["players"]["i"]["lines"].append([0, 0])

        self.assertEqual(game.get_player_world(1), game.get_player_world(1))
        self.assertNotIn([0, 0], game.get_player_world(1)["players"]["i"]["lines"])

    def test_leader(self):
        game = Game(2)
        self.assertIsNone(game.leader_id())
        game.players[2].score = 3
        self.assertEqual(game.leader_id(), 2)
        self.assertEqual(game.get_player_scores(), [0, 3])
        self.assertEqual(Game(1).leader_id(), 1)


class TestRandomPlay(unittest.TestCase):
    def test_invariants_hold_over_a_random_match(self):
        rng = random.Random(7)
        game = Game(4)
        for _ in range(120):
            for pid in game.alive_ids():
                if rng.random() < 0.3:
                    game.try_change_direction(pid, rng.choice(list(Direction)))
            scores_before = {pid: game.players[pid].score for pid in game.alive_ids()}

            game.tick()

            for pid, score in scores_before.items():
                self.assertGreaterEqual(game.players[pid].score, score)
            for pid in game.players.ids():
                if game.has_lost(pid):
                    self.assertEqual(game.field.captured_cells(pid), [])
                    self.assertEqual(game.field.traced_cells(pid), [])
            assert_field_consistent(self, game)


if __name__ == '__main__':
    unittest.main()
