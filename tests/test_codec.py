import threading

import pytest

from bigslice.codec import Decoder, Encoder, Session, fresh_key


class ListEncoder(Encoder):
    def __init__(self, sink):
        super().__init__()
        self.sink = sink

    def encode(self, value):
        self.sink.append(value)


class ListDecoder(Decoder):
    def __init__(self, source):
        super().__init__()
        self.source = iter(source)

    def decode(self):
        return next(self.source)


def test_fresh_keys_increase():
    first = fresh_key()
    second = fresh_key()
    assert second > first


def test_fresh_keys_unique_across_threads():
    results = [[] for _ in range(8)]

    def worker(out):
        for _ in range(200):
            out.append(fresh_key())

    threads = [threading.Thread(target=worker, args=(out,)) for out in results]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    keys = [key for out in results for key in out]
    assert len(keys) == 1600
    assert len(set(keys)) == 1600
    for out in results:
        assert out == sorted(out)
    later = fresh_key()
    assert later > max(keys)


def test_session_state_first_then_shared():
    session = Session()
    key = fresh_key()
    value, first = session.state(key, dict)
    assert first is True
    value["n"] = 1
    again, first_again = session.state(key, dict)
    assert first_again is False
    assert again is value


def test_session_state_without_factory():
    session = Session()
    value, first = session.state(fresh_key())
    assert value is None
    assert first is True


def test_sessions_are_independent():
    key = fresh_key()
    a, b = Session(), Session()
    va, _ = a.state(key, list)
    vb, first = b.state(key, list)
    assert first is True
    assert va is not vb


def test_abstract_codecs_cannot_be_built():
    with pytest.raises(TypeError):
        Encoder()
    with pytest.raises(TypeError):
        Decoder()


def test_encoder_decoder_round_trip():
    sink = []
    enc = ListEncoder(sink)
    for item in ["a", 1, (2, 3)]:
        enc.encode(item)
    dec = ListDecoder(sink)
    assert [dec.decode() for _ in range(3)] == ["a", 1, (2, 3)]
    key = fresh_key()
    state, first = enc.state(key, list)
    assert first is True
    assert enc.state(key, list) == (state, False)