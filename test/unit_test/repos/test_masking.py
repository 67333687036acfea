import pytest

from controlplane_store.models import ModelSecret
from controlplane_store.repos.normalization import mask_secret, to_model_secret_meta


@pytest.mark.parametrize(
    "secret,masked",
    [
        ("", "****"),
        ("abc", "****"),
        ("abcd", "****"),
        ("abcde", "a***de"),
        ("ABCDEFGH", "A***GH"),
        ("sk-ABCDEFGH", "sk***EFGH"),
        ("sk-live-0123456789", "sk***6789"),
    ],
)
def test_mask_secret(secret, masked):
    assert mask_secret(secret) == masked


@pytest.mark.parametrize("secret", ["abc", "abcdef", "sk-ABCDEFGH", "x" * 64])
def test_meta_never_carries_raw_key(secret):
    meta = to_model_secret_meta(
        ModelSecret(tenant_id="t1", provider="openai", api_key=secret, updated_at="2024-01-01T00:00:00.000Z")
    )

    assert meta.key_last4 == secret[-4:]
    assert "api_key" not in meta.model_dump()
    if len(secret) > 4:
        assert secret not in meta.masked_key


def test_scenario_key_masks_with_long_rule():
    meta = to_model_secret_meta(
        ModelSecret(tenant_id="t1", provider="openai", api_key="sk-ABCDEFGH", updated_at="2024-01-01T00:00:00.000Z")
    )
    assert meta.masked_key == "sk***EFGH"
    assert meta.key_last4 == "EFGH"


def test_secret_repr_hides_api_key():
    secret = ModelSecret(tenant_id="t1", provider="openai", api_key="sk-very-secret", updated_at="x")
    assert "sk-very-secret" not in repr(secret)
