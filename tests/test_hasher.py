import pytest

from otari import hasher


class _Parts:
    def __init__(self, *parts):
        self.parts = parts

    def marshal_hash(self, h):
        for part in self.parts:
            h.write(part)


class _Broken:
    def marshal_hash(self, h):
        raise ValueError("cannot hash")


def test_empty_digest_matches_blake3_vector():
    assert hasher.Hash().digest().hex() == (
        "af1349b9f5f9a1a6a0404dea36dcc9499bcb25c9adc112b7cc9a93cae41f3262"
    )


def test_abc_digest_matches_blake3_vector():
    h = hasher.Hash()
    h.write(b"abc")
    assert h.digest().hex() == (
        "6437b3ac38465133ffb63b75273a8db548c558465d79db03fd359c6cd5bd9d85"
    )


def test_digest_is_32_bytes_and_repeatable():
    h = hasher.Hash()
    h.write(b"x" * 3000)
    first = h.digest()
    assert len(first) == 32
    assert h.digest() == first


@pytest.mark.parametrize("size", [0, 63, 64, 65, 1023, 1024, 1025, 2048, 4097, 9000])
def test_incremental_writes_equal_single_write(size):
    data = bytes(i % 251 for i in range(size))
    whole = hasher.Hash()
    whole.write(data)
    pieces = hasher.Hash()
    for start in range(0, size, 97):
        pieces.write(data[start:start + 97])
    assert pieces.digest() == whole.digest()


def test_chunk_boundary_changes_digest():
    a = hasher.Hash()
    a.write(b"\x01" * 1024)
    b = hasher.Hash()
    b.write(b"\x01" * 1025)
    assert a.digest() != b.digest()
    assert len(b.digest()) == 32


def test_write_accepts_text():
    as_text = hasher.Hash()
    assert as_text.write("café") == len("café".encode())
    as_bytes = hasher.Hash()
    as_bytes.write("café".encode())
    assert as_text.digest() == as_bytes.digest()


def test_encode_b58_known_value():
    assert hasher.encode_b58(b"hello world") == "StV1DL6CwTryKyV"


def test_encode_b58_leading_zeros_and_empty():
    assert hasher.encode_b58(b"") == ""
    assert hasher.encode_b58(b"\x00\x00hello world") == "11" + hasher.encode_b58(b"hello world")


def test_marshal_hashable_concatenates_writes():
    direct = hasher.Hash()
    direct.write(b"abc")
    assert hasher.marshal_hashable(_Parts(b"a", "bc")) == direct.digest()


def test_marshal_hashable_b58_encodes_digest():
    obj = _Parts(b"web", b"nginx")
    encoded = hasher.marshal_hashable_b58(obj)
    assert encoded == hasher.encode_b58(hasher.marshal_hashable(obj))
    assert set(encoded) <= set("123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz")


def test_marshal_hashable_propagates_errors():
    with pytest.raises(ValueError, match="cannot hash"):
        hasher.marshal_hashable_b58(_Broken())


def test_hashable_protocol_objects_hash():
    obj = _Parts(b"abc")
    assert isinstance(obj, hasher.Hashable)
    assert not isinstance(object(), hasher.Hashable)
    assert hasher.marshal_hashable(obj).hex() == (
        "6437b3ac38465133ffb63b75273a8db548c558465d79db03fd359c6cd5bd9d85"
    )