import pytest

from pipegen import grids
from pipegen.polygon import DIAMOND, HEXAGON, OCTAGON, SQUARE


def test_hexagon_rotation_examples() -> None:
    assert HEXAGON.rotate(1, 1) == 32
    assert HEXAGON.rotate(1, -1) == 2
    assert HEXAGON.rotate(9, 1) == 36
    assert HEXAGON.rotate(9, 3) == 9
    assert SQUARE.rotate(1, 1) == 8
    assert DIAMOND.rotate(2, 1) == 128


def test_rotate_back_and_forth() -> None:
    for polygon in (SQUARE, HEXAGON, OCTAGON, DIAMOND):
        k = len(polygon.directions)
        for tile in polygon.tile_types:
            for n in range(-k - 1, k + 2):
                assert polygon.rotate(polygon.rotate(tile, n), -n) == tile


def test_tile_types_shared_between_rotations() -> None:
    types = HEXAGON.tile_types
    assert types[21] is types[42]
    assert types[42].pattern == 21
    assert types[1].deadend
    assert types[9].straight
    assert not types[3].straight
    assert types[63].fully_connected
    assert types[21].no_adjacent_connections
    assert types[21].no_adjacent_walls
    assert types[7].many_adjacent_connections
    assert not types[13].many_adjacent_connections
    assert types[27].no_isolated_connections
    assert not types[11].no_isolated_connections
    assert not types[23].no_isolated_connections
    assert SQUARE.tile_types[5].straight
    assert DIAMOND.tile_types[2 + 32].straight
    assert set(DIAMOND.tile_types) == {
        m for m in range(171) if m & ~170 == 0
    }


def test_square_neighbours() -> None:
    grid = grids.create_grid("square", 3, 3)
    assert grid.find_neighbour(4, 2).neighbour == 1
    assert grid.find_neighbour(4, 1).neighbour == 5
    assert grid.find_neighbour(4, 8).neighbour == 7
    corner = grid.find_neighbour(0, 4)
    assert corner.neighbour == -1
    assert corner.empty
    assert corner.opposite_direction == 1

    wrapped = grids.create_grid("square", 3, 3, wrap=True)
    assert wrapped.find_neighbour(0, 4).neighbour == 2
    assert wrapped.find_neighbour(0, 2).neighbour == 6


def test_hexagonal_neighbours() -> None:
    grid = grids.create_grid("hexagonal", 3, 3)
    # 奇数行は半セル東にずれている
    assert grid.find_neighbour(3, 2).neighbour == 1
    assert grid.find_neighbour(1, 32).neighbour == 4
    assert grid.find_neighbour(4, 4).neighbour == 1
    assert grid.find_neighbour(1, 16).neighbour == 3
    assert grid.find_neighbour(1, 2).empty


def test_octagonal_layout() -> None:
    grid = grids.create_grid("octagonal", 3, 3)
    assert grid.total == 18
    assert grid.empty_cells == {11, 14, 15, 16, 17}
    assert grid.polygon_at(4) is OCTAGON
    assert grid.polygon_at(9) is DIAMOND
    assert grid.find_neighbour(4, 128).neighbour == 13
    assert grid.find_neighbour(4, 8).neighbour == 9
    assert grid.find_neighbour(9, 128).neighbour == 4
    assert grid.find_neighbour(4, 1).neighbour == 5

    wrapped = grids.create_grid("octagonal", 3, 3, wrap=True)
    assert wrapped.empty_cells == set()


@pytest.mark.parametrize("kind", sorted(grids.GRID_KINDS))
@pytest.mark.parametrize("wrap", [False, True])
@pytest.mark.parametrize("size", [(3, 3), (4, 4), (5, 4), (4, 5)])
def test_neighbours_are_symmetric(kind: str, wrap: bool, size: tuple[int, int]) -> None:
    grid = grids.create_grid(kind, size[0], size[1], wrap)
    for index in range(grid.total):
        for direction in grid.polygon_at(index).directions:
            found = grid.find_neighbour(index, direction)
            if found.neighbour < 0:
                continue
            back = grid.find_neighbour(found.neighbour, found.opposite_direction)
            assert back.neighbour == index


def test_empty_cells_from_tiles() -> None:
    tiles = [1, 4, 0, 0]
    grid = grids.create_grid("square", 2, 2, tiles=tiles)
    assert grid.empty_cells == {2, 3}
    assert grid.find_neighbour(0, 8).empty
    assert list(grid.cells()) == [0, 1]
    assert grid.export(tiles) == {
        "width": 2,
        "height": 2,
        "wrap": False,
        "kind": "square",
        "tiles": [1, 4, 0, 0],
    }


def test_create_grid_rejects_unknown_kind() -> None:
    with pytest.raises(ValueError):
        grids.create_grid("triangular", 3, 3)
    with pytest.raises(ValueError):
        grids.create_grid("square", 3, 3, tiles=[1, 2])
