import json
import hashlib
from pathlib import Path
import sys
from typing import Any, Dict, cast
import random
import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))
from pipegen import generator  # noqa: E402
from pipegen import puzzle_io  # noqa: E402
from pipegen import validator  # noqa: E402
from pipegen import solver  # noqa: E402
from pipegen import sat_unique  # noqa: E402
from pipegen.grids import create_grid  # noqa: E402

SWAP_TILES = [9, 12, 10, 10, 2, 2]


def test_generate_puzzle_structure() -> None:
    puzzle = cast(Dict[str, Any], generator.generate_puzzle("square", 4, 4, seed=0))
    # JSON に変換できるか確認
    json.dumps(puzzle)
    assert puzzle["schemaVersion"] == "1.0"
    assert puzzle["id"].startswith("square_4x4_")
    assert puzzle["kind"] == "square"
    assert puzzle["width"] == 4
    assert puzzle["height"] == 4
    assert puzzle["wrap"] is False
    assert len(puzzle["tiles"]) == 16
    assert all(t > 0 for t in puzzle["tiles"])
    assert puzzle["partial"] is False
    assert "reason" not in puzzle
    assert puzzle["solverStats"]["solutions"] == 1
    assert puzzle["solverStats"]["steps"] > 0
    assert puzzle["solverStats"]["maxDepth"] >= 0
    assert puzzle["difficultyEval"] in {"easy", "normal", "hard", "expert"}
    assert puzzle["generationParams"] == {
        "kind": "square",
        "width": 4,
        "height": 4,
        "wrap": False,
        "seed": 0,
        "branchingAmount": 0.6,
        "avoidObvious": 0.0,
        "avoidStraights": 0.0,
        "solutionsNumber": "unique",
    }
    assert puzzle["seedHash"] == hashlib.sha256(b"0").hexdigest()


def test_generated_puzzles_have_one_solution() -> None:
    for kind, width, height in [("square", 4, 4), ("hexagonal", 4, 4), ("octagonal", 3, 3)]:
        grid = create_grid(kind, width, height)
        puzzle = cast(Dict[str, Any], generator.generate_puzzle(kind, width, height, seed=1))
        assert solver.count_solutions(puzzle["tiles"], grid) == 1


def test_generate_is_reproducible() -> None:
    first = cast(Dict[str, Any], generator.generate_puzzle("hexagonal", 3, 3, seed=3))
    second = cast(Dict[str, Any], generator.generate_puzzle("hexagonal", 3, 3, seed=3))
    assert first["tiles"] == second["tiles"]


def test_generate_puzzle_return_stats() -> None:
    puzzle, stats = cast(
        tuple,
        generator.generate_puzzle("square", 4, 4, wrap=True, seed=2, return_stats=True),
    )
    assert "_wrap_" in puzzle["id"]
    assert set(stats) == {"solver_steps", "solver_max_depth", "solutions"}
    assert stats["solutions"] == puzzle["solverStats"]["solutions"]


def test_generator_reports_progress() -> None:
    grid = create_grid("hexagonal", 3, 3)
    gen = generator.Generator(grid, random.Random(4))
    stages = []
    gen.generator_progress_callback = lambda p: stages.append(p.stage)
    solver_progress = []
    gen.solver_progress_callback = solver_progress.append
    tiles = gen.generate()
    assert stages[0] == "pregenerate"
    assert "unique" in stages
    assert stages[-1] == "rotate"
    assert solver_progress
    assert solver.count_solutions(tiles, grid) == 1


def test_generate_whatever_keeps_tree() -> None:
    grid = create_grid("square", 4, 4)
    gen = generator.Generator(grid, random.Random(5))
    tiles = gen.generate(solutions_number="whatever")
    assert solver.count_solutions(tiles, grid) >= 1
    with pytest.raises(ValueError):
        gen.generate(solutions_number="several")


def test_ensure_unique_solution_gives_up() -> None:
    # 左右でつながった 2 セルの入れ替えは形を変えても解消できない
    grid = create_grid("square", 2, 3, wrap=True)
    gen = generator.Generator(grid, random.Random(0))
    with pytest.raises(generator.GenerationError) as info:
        gen.ensure_unique_solution(SWAP_TILES)
    assert info.value.tiles is not None


def test_random_rotate_keeps_shapes() -> None:
    grid = create_grid("octagonal", 3, 3)
    gen = generator.Generator(grid, random.Random(6))
    tree = gen.pregenerate_spanning_tree()
    rotated = gen.random_rotate(tree)
    for index in grid.cells():
        polygon = grid.polygon_at(index)
        assert rotated[index] in polygon.rotations_of(tree[index])
    for index in grid.empty_cells:
        assert rotated[index] == 0


def test_save_and_load_puzzle(tmp_path: Path) -> None:
    puzzle = cast(Dict[str, Any], generator.generate_puzzle("hexagonal", 3, 3, seed=1))
    path = puzzle_io.save_puzzle(puzzle, directory=tmp_path / "out")
    assert path.exists()
    assert path.parent == tmp_path / "out"
    assert path.name == "map_pipes.json"
    assert puzzle_io.load_puzzles(path) == [puzzle]

    path = puzzle_io.save_puzzles([puzzle, puzzle], directory=tmp_path, filename="all.json")
    assert len(puzzle_io.load_puzzles(path)) == 2

    bad = tmp_path / "bad.json"
    bad.write_text("3", encoding="utf-8")
    with pytest.raises(ValueError):
        puzzle_io.load_puzzles(bad)


def test_validate_puzzle() -> None:
    puzzle = cast(Dict[str, Any], generator.generate_puzzle("square", 3, 3, seed=0))
    # エラーが出ないことを確認
    validator.validate_puzzle(puzzle)
    validator.validate_puzzle(puzzle, cross_check=True)


def test_validate_puzzle_fail() -> None:
    puzzle = cast(Dict[str, Any], generator.generate_puzzle("square", 3, 3, seed=3))
    # 角のセルに十字タイルは置けない
    broken = dict(puzzle, tiles=[15] + puzzle["tiles"][1:])
    with pytest.raises(ValueError):
        validator.validate_puzzle(broken)

    invalid = dict(puzzle, tiles=[99] + puzzle["tiles"][1:])
    with pytest.raises(ValueError):
        validator.validate_puzzle(invalid)

    missing = dict(puzzle)
    del missing["tiles"]
    with pytest.raises(ValueError):
        validator.validate_puzzle(missing)

    with pytest.raises(ValueError):
        validator.validate_puzzle(dict(puzzle, kind="triangular"))


def test_validate_ambiguous_puzzle() -> None:
    grid = create_grid("square", 2, 3, wrap=True)
    puzzle = grid.export(SWAP_TILES)
    with pytest.raises(ValueError):
        validator.validate_puzzle(puzzle)
    validator.validate_puzzle(puzzle, require_unique=False)


def test_sat_agrees_with_solver() -> None:
    swap_grid = create_grid("square", 2, 3, wrap=True)
    assert not sat_unique.is_unique(SWAP_TILES, swap_grid)
    assert not sat_unique.is_unique([9, 12, 3, 6], create_grid("square", 2, 2))

    puzzle = cast(Dict[str, Any], generator.generate_puzzle("hexagonal", 3, 3, seed=7))
    grid = validator.grid_from_puzzle(puzzle)
    assert sat_unique.is_unique(puzzle["tiles"], grid)


def test_generate_puzzle_timeout() -> None:
    with pytest.raises(TimeoutError):
        generator.generate_puzzle("square", 3, 3, timeout_s=0.0)


def test_generate_multiple_puzzles(tmp_path: Path) -> None:
    puzzles = generator.generate_multiple_puzzles("square", 3, 3, 2, seed=5)
    assert len(puzzles) == 2
    assert [p["generationParams"]["seed"] for p in puzzles] == [5, 6]
    path = puzzle_io.save_puzzles(puzzles, directory=tmp_path)
    data = json.loads(path.read_text(encoding="utf-8"))
    assert len(data) == 2
    with pytest.raises(ValueError):
        generator.generate_multiple_puzzles("square", 3, 3, 0)


def test_puzzle_to_ascii() -> None:
    puzzle = cast(Dict[str, Any], generator.generate_puzzle("square", 3, 3, seed=6))
    lines = generator.puzzle_to_ascii(puzzle).splitlines()
    assert len(lines) == 3
    assert all(len(line) == 3 for line in lines)

    octa = cast(Dict[str, Any], generator.generate_puzzle("octagonal", 2, 2, seed=6))
    assert len(generator.puzzle_to_ascii(octa).splitlines()) == 4


@pytest.mark.slow
@pytest.mark.parametrize(
    "kind, width, height, wrap",
    [
        ("square", 7, 7, False),
        ("square", 5, 5, True),
        ("hexagonal", 6, 6, False),
        ("hexagonal", 5, 5, True),
        ("octagonal", 4, 4, False),
        ("octagonal", 4, 4, True),
    ],
)
def test_larger_boards_are_unique(kind: str, width: int, height: int, wrap: bool) -> None:
    puzzle = cast(
        Dict[str, Any],
        generator.generate_puzzle(kind, width, height, wrap=wrap, seed=11),
    )
    assert puzzle["partial"] is False
    validator.validate_puzzle(puzzle)
    grid = validator.grid_from_puzzle(puzzle)
    assert sat_unique.is_unique(puzzle["tiles"], grid)


@pytest.mark.slow
def test_generate_multiple_parallel() -> None:
    puzzles = generator.generate_multiple_puzzles("hexagonal", 4, 4, 2, seed=8, jobs=2)
    assert len(puzzles) == 2
