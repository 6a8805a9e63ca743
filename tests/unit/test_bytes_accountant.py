"""
Unit tests for the per-call bytes accountant.
"""

from hivekeeper.storage.bytes_accountant import BytesAccountant


class TestBytesAccountant:
    """Test byte accounting for confirmed deletions."""

    def test_settle_sums_confirmed_keys_only(self):
        """Test only keys confirmed deleted are added to bytes freed."""
        accountant = BytesAccountant()
        accountant.remember_size("a", 10)
        accountant.remember_size("b", 20)
        accountant.remember_size("c", 40)

        assert accountant.settle(["a", "b"]) == 30
        assert accountant.bytes_freed == 30

    def test_unknown_key_counts_as_zero(self):
        """Test a key with no remembered size counts as zero bytes."""
        accountant = BytesAccountant()
        accountant.remember_size("a", 10)

        assert accountant.settle(["a", "missing"]) == 10

    def test_key_is_not_counted_twice(self):
        """Test settling the same key twice counts it once."""
        accountant = BytesAccountant()
        accountant.remember_size("a", 10)

        accountant.settle(["a"])
        accountant.settle(["a"])

        assert accountant.bytes_freed == 10

    def test_instances_do_not_share_sizes(self):
        """Test each accountant keeps its own size cache."""
        first = BytesAccountant()
        first.remember_size("a", 10)

        assert BytesAccountant().settle(["a"]) == 0
