import pytest
import torch

from spikepipe.core.tensor import BufferArena, Shape, SparseTensor, from_sparse, to_sparse


def test_round_trip_preserves_values():
    t = torch.zeros(3, 4, 2, 2)
    t[0, 1, 0, 1] = 3.5
    t[2, 3, 1, 0] = -1.0

    back = from_sparse(to_sparse(t))
    assert back.shape == t.shape
    assert torch.equal(back, t)


def test_round_trip_of_random_sparse_tensor():
    torch.manual_seed(0)
    t = torch.rand(5, 6, 3, 2)
    t[t < 0.7] = 0.0

    sparse = to_sparse(t)
    assert sparse.nnz == int((t != 0).sum())
    assert torch.equal(from_sparse(sparse), t)


def test_all_default_tensor_stores_nothing():
    sparse = to_sparse(torch.zeros(4, 4, 1, 1))
    assert sparse.nnz == 0
    assert sparse.density() == 0.0
    assert torch.equal(from_sparse(sparse), torch.zeros(4, 4, 1, 1))


def test_non_zero_default():
    t = torch.full((2, 2, 1, 1), 7.0)
    t[1, 1, 0, 0] = 0.0

    sparse = to_sparse(t, default=7.0)
    assert sparse.nnz == 1
    assert sparse.indices.tolist() == [[1, 1, 0, 0]]
    assert torch.equal(from_sparse(sparse), t)


def test_negative_zero_keeps_its_sign():
    t = torch.zeros(2, 2, 1, 1)
    t[0, 1, 0, 0] = -0.0

    sparse = to_sparse(t)
    back = from_sparse(sparse)

    assert sparse.nnz == 1
    assert sparse.indices.tolist() == [[0, 1, 0, 0]]
    assert torch.equal(torch.signbit(back), torch.signbit(t))

    # against a negative-zero default the positive zeros are the stored ones
    assert to_sparse(t, default=-0.0).nnz == 3
    assert to_sparse(torch.zeros(2, 2, 1, 1, dtype=torch.int32)).nnz == 0


def test_indices_are_row_major():
    t = torch.zeros(2, 2, 1, 1)
    t[1, 0, 0, 0] = 1.0
    t[0, 1, 0, 0] = 2.0

    sparse = to_sparse(t)
    assert sparse.indices.tolist() == [[0, 1, 0, 0], [1, 0, 0, 0]]
    assert sparse.values.tolist() == [2.0, 1.0]


def test_to_sparse_copies_values():
    t = torch.ones(2, 2, 1, 1)
    sparse = to_sparse(t)
    t.zero_()
    assert torch.equal(from_sparse(sparse), torch.ones(2, 2, 1, 1))


def test_dtype_is_preserved():
    t = torch.zeros(2, 2, 1, 1, dtype=torch.float64)
    t[0, 0, 0, 0] = 1.0
    assert from_sparse(to_sparse(t)).dtype == torch.float64


def test_to_sparse_rejects_non_4d():
    with pytest.raises(ValueError):
        to_sparse(torch.zeros(3, 3))


def test_shape_equality_and_string():
    shape = Shape(4, 4, 2, 1)
    assert shape == Shape.from_sequence([4, 4, 2, 1])
    assert shape == (4, 4, 2, 1)
    assert shape != Shape(4, 4, 1, 1)
    assert shape.to_string() == "(4, 4, 2, 1)"
    assert shape.numel() == 32
    assert shape.dim(2) == 2


@pytest.mark.parametrize("dims", [(1, 2, 3), (1, 2, 3, 4, 5), (1, -1, 1, 1)])
def test_shape_from_sequence_rejects_bad_dims(dims):
    with pytest.raises(ValueError):
        Shape.from_sequence(dims)


def test_sparse_tensor_validates_indices():
    with pytest.raises(ValueError):
        SparseTensor(Shape(2, 2, 1, 1), torch.zeros(3, 2, dtype=torch.long), torch.zeros(3))
    with pytest.raises(ValueError):
        SparseTensor(Shape(2, 2, 1, 1), torch.zeros(3, 4, dtype=torch.long), torch.zeros(2))


def test_equals_and_copy():
    t = torch.zeros(2, 2, 1, 1)
    t[0, 0, 0, 0] = 1.0
    sparse = to_sparse(t)
    clone = sparse.copy()

    assert sparse.equals(clone)
    clone.values.mul_(2)
    assert not sparse.equals(clone)


def test_to_coo_matches_dense():
    t = torch.zeros(2, 3, 1, 1)
    t[1, 2, 0, 0] = 4.0
    assert torch.equal(to_sparse(t).to_coo().to_dense(), t)


def test_to_coo_requires_zero_default():
    with pytest.raises(ValueError):
        to_sparse(torch.ones(2, 2, 1, 1), default=1.0).to_coo()


def test_from_sparse_reuses_matching_buffer():
    buffer = torch.full((2, 2, 1, 1), 9.0)
    out = from_sparse(to_sparse(torch.eye(2).reshape(2, 2, 1, 1)), out=buffer)
    assert out is buffer
    assert torch.equal(out, torch.eye(2).reshape(2, 2, 1, 1))


def test_arena_reuses_buffer_per_shape():
    arena = BufferArena()
    a = arena.materialize(to_sparse(torch.ones(2, 2, 1, 1)))
    b = arena.materialize(to_sparse(torch.zeros(2, 2, 1, 1)))
    c = arena.materialize(to_sparse(torch.ones(3, 3, 1, 1)))

    assert a is b
    assert c is not a
    assert torch.equal(b, torch.zeros(2, 2, 1, 1))
    assert len(arena) == 2

    arena.clear()
    assert len(arena) == 0


def test_disabled_arena_allocates():
    arena = BufferArena(enabled=False)
    a = arena.materialize(to_sparse(torch.ones(2, 2, 1, 1)))
    b = arena.materialize(to_sparse(torch.ones(2, 2, 1, 1)))
    assert a is not b
    assert len(arena) == 0
