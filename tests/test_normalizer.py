"""
Tests for the Update Normalizer.
"""

import pytest
import os
import sys
from datetime import datetime, timezone

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.normalizer import UpdateNormalizer, normalize, coerce_sequence
from models.raw_event import RawChangeEvent


OBSERVED = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class TestNormalize:
    """Tests for UpdateNormalizer.normalize."""

    def setup_method(self):
        self.normalizer = UpdateNormalizer(default_label='Dota 2')

    def test_full_product_info(self, product_info):
        event = RawChangeEvent(resource_id=570, sequence=101, data=product_info)

        update = self.normalizer.normalize(event, observed_at=OBSERVED)

        assert update.resource_id == 570
        assert update.sequence == 101
        assert update.label == 'Dota 2'
        assert update.build_marker == '16892451'
        assert [d.id for d in update.changed_subresources] == ['373301', '373302']
        assert update.changed_subresources[0].name == 'Dota 2 Win64'
        assert update.changed_subresources[0].size == '35000000000'
        assert update.changed_subresources[1].size is None
        assert {b.name for b in update.branches} == {'public', 'beta'}
        assert update.observed_at == OBSERVED
        assert update.updated_at == datetime.fromtimestamp(1736937000, tz=timezone.utc)

    def test_missing_everything_uses_defaults(self):
        event = RawChangeEvent(resource_id=570, sequence=None, data={})

        update = self.normalizer.normalize(event, observed_at=OBSERVED)

        assert update.sequence is None
        assert update.label == 'Dota 2'
        assert update.build_marker is None
        assert update.changed_subresources == []
        assert update.branches == []
        assert update.updated_at == OBSERVED
        assert update.missing_token is False

    def test_malformed_nested_values_do_not_raise(self):
        data = {
            'changenumber': 'not-a-number',
            'appinfo': {
                'common': 'oops',
                'depots': {
                    'branches': ['public'],
                    '12345': 'not a mapping',
                    'abc': {'name': 'not a depot'},
                },
            },
        }
        event = RawChangeEvent(resource_id=570, sequence=None, data=data)

        update = self.normalizer.normalize(event, observed_at=OBSERVED)

        assert update.sequence is None
        assert update.label == 'Dota 2'
        assert update.changed_subresources == []
        assert update.branches == []

    def test_non_dict_data_does_not_raise(self):
        event = RawChangeEvent(resource_id=570, sequence=3, data=None)

        update = self.normalizer.normalize(event, observed_at=OBSERVED)

        assert update.sequence == 3
        assert update.changed_subresources == []

    def test_data_without_appinfo_wrapper(self):
        data = {
            'common': {'name': 'Renamed'},
            'depots': {'571': {'name': 'content'}},
        }
        event = RawChangeEvent(resource_id=570, data=data)

        update = self.normalizer.normalize(event, observed_at=OBSERVED)

        assert update.label == 'Renamed'
        assert [d.id for d in update.changed_subresources] == ['571']

    def test_sequence_falls_back_to_blob(self):
        event = RawChangeEvent(resource_id=570, sequence=None, data={'changenumber': 77})
        assert self.normalizer.normalize(event).sequence == 77

    def test_event_sequence_wins_over_blob(self):
        event = RawChangeEvent(resource_id=570, sequence=80, data={'changenumber': 77})
        assert self.normalizer.normalize(event).sequence == 80

    def test_negative_sequence_becomes_unknown(self):
        event = RawChangeEvent(resource_id=570, sequence=-1, data={})
        assert self.normalizer.normalize(event).sequence is None

    def test_reserved_depot_keys_excluded(self, product_info):
        event = RawChangeEvent(resource_id=570, data=product_info)

        ids = [d.id for d in self.normalizer.normalize(event).changed_subresources]

        assert 'branches' not in ids
        assert 'maxsize' not in ids
        assert 'workshopdepot' not in ids
        assert 'baselanguages' not in ids

    def test_custom_default_branch(self, product_info):
        normalizer = UpdateNormalizer(default_branch='beta')
        event = RawChangeEvent(resource_id=570, data=product_info)

        assert normalizer.normalize(event).build_marker == '16892500'

    def test_missing_token_flag(self):
        event = RawChangeEvent(resource_id=570, data={'missingToken': True})
        assert self.normalizer.normalize(event).missing_token is True

    def test_deterministic(self, product_info):
        event = RawChangeEvent(resource_id=570, sequence=101, data=product_info)
        assert normalize(event, OBSERVED) == normalize(event, OBSERVED)


class TestCoerceSequence:
    """Tests for coerce_sequence."""

    def test_int(self):
        assert coerce_sequence(5) == 5

    def test_zero(self):
        assert coerce_sequence(0) == 0

    def test_numeric_string(self):
        assert coerce_sequence(' 28453921 ') == 28453921

    def test_rejects_bool(self):
        assert coerce_sequence(True) is None

    def test_rejects_float_and_garbage(self):
        assert coerce_sequence(1.5) is None
        assert coerce_sequence('12a') is None
        assert coerce_sequence({}) is None


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
