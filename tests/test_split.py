from annoconv.pipeline.split import Split, determine_split, split_for_key, stable_hash


class TestStableHash:
    def test_is_repeatable(self):
        assert stable_hash("/data/images/a.png") == stable_hash("/data/images/a.png")

    def test_is_64_bit(self):
        assert 0 <= stable_hash("x") < 2**64

    def test_known_value(self):
        # First eight bytes of sha1("abc") = a9993e364706816a.
        assert stable_hash("abc") == 0xA9993E364706816A


class TestDetermineSplit:
    def test_buckets(self):
        assert determine_split(150, 0.2, 0.1) is Split.VAL
        assert determine_split(250, 0.2, 0.1) is Split.TEST
        assert determine_split(300, 0.2, 0.1) is Split.TRAIN
        assert determine_split(1999, 0.2, 0.1) is Split.TRAIN

    def test_zero_sizes_are_all_train(self):
        assert all(determine_split(value, 0.0, 0.0) is Split.TRAIN for value in range(1000))

    def test_full_val(self):
        assert all(determine_split(value, 1.0, 0.0) is Split.VAL for value in range(1000))

    def test_split_for_key_is_deterministic(self):
        keys = [f"/data/img_{idx}.png" for idx in range(200)]
        first = [split_for_key(key, 0.2, 0.1) for key in keys]
        second = [split_for_key(key, 0.2, 0.1) for key in keys]
        assert first == second
        assert {Split.TRAIN, Split.VAL, Split.TEST} <= set(first)
