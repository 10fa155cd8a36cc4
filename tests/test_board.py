from pipegen.board import analyze_board, mutual_edges
from pipegen.grids import create_grid


def test_hexagonal_components() -> None:
    grid = create_grid("hexagonal", 3, 3)
    tiles = [1, 3, 3, 11, 11, 5, 1, 1, 1]
    analysis = analyze_board(grid, tiles)
    assert analysis.components == [frozenset({3, 4})]
    assert analysis.loop_tiles == set()
    assert analysis.component_of(4) == frozenset({3, 4})
    assert analysis.component_of(0) == frozenset({0})
    assert not analysis.is_solved(grid)


def test_hexagonal_loop() -> None:
    grid = create_grid("hexagonal", 3, 3)
    tiles = [1, 48, 3, 11, 44, 5, 1, 1, 1]
    analysis = analyze_board(grid, tiles)
    assert analysis.loop_tiles == {1, 3, 4}
    assert not analysis.is_solved(grid)


def test_square_board_states() -> None:
    grid = create_grid("square", 3, 1)
    assert analyze_board(grid, [1, 5, 4]).is_solved(grid)

    analysis = analyze_board(grid, [1, 4, 0])
    assert analysis.dangling == 0
    assert analysis.components == [frozenset({0, 1})]
    assert not analysis.is_solved(grid)

    analysis = analyze_board(grid, [1, 5, 1])
    assert analysis.dangling == 2
    assert not analysis.is_solved(grid)


def test_square_loop() -> None:
    grid = create_grid("square", 2, 2)
    analysis = analyze_board(grid, [9, 12, 3, 6])
    assert analysis.loop_tiles == {0, 1, 2, 3}
    assert analysis.components == [frozenset({0, 1, 2, 3})]


def test_double_connection_is_a_loop() -> None:
    # 幅 2 の周回盤面では東西両方でつながると 2 本の辺になる
    grid = create_grid("square", 2, 1, wrap=True)
    edges, dangling = mutual_edges(grid, [5, 5])
    assert edges == [(0, 1), (0, 1)]
    assert dangling == 0
    assert analyze_board(grid, [5, 5]).loop_tiles == {0, 1}
    assert analyze_board(grid, [1, 4]).is_solved(grid)
