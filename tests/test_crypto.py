import base64

import pytest

from app.core.crypto import (
    IV_SIZE,
    DecryptionError,
    FileCipher,
    KeyConfigurationError,
    compute_hash,
    decode_master_key,
)

KEY = bytes(range(32))


def test_compute_hash_is_sha256_hex():
    assert compute_hash(b"abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


@pytest.mark.parametrize("payload", [b"", b"x", b"hello world" * 1000, bytes(range(256))])
def test_encrypt_decrypt_round_trip(payload):
    cipher = FileCipher(KEY)
    iv, ciphertext = cipher.encrypt(payload, "1700000000000_abc")
    assert len(iv) == IV_SIZE
    assert ciphertext != payload or payload == b""
    assert cipher.decrypt(ciphertext, iv, "1700000000000_abc") == payload


def test_each_encryption_uses_a_fresh_iv():
    cipher = FileCipher(KEY)
    first_iv, first_ct = cipher.encrypt(b"same bytes", "f1")
    second_iv, second_ct = cipher.encrypt(b"same bytes", "f1")
    assert first_iv != second_iv
    assert first_ct != second_ct


def test_tampered_ciphertext_fails():
    cipher = FileCipher(KEY)
    iv, ciphertext = cipher.encrypt(b"secret", "f1")
    tampered = bytes([ciphertext[0] ^ 0x01]) + ciphertext[1:]
    with pytest.raises(DecryptionError):
        cipher.decrypt(tampered, iv, "f1")


def test_truncated_ciphertext_and_bad_iv_fail():
    cipher = FileCipher(KEY)
    iv, ciphertext = cipher.encrypt(b"secret", "f1")
    with pytest.raises(DecryptionError):
        cipher.decrypt(ciphertext[:4], iv, "f1")
    with pytest.raises(DecryptionError):
        cipher.decrypt(ciphertext, iv[:8], "f1")


def test_ciphertext_is_bound_to_file_id():
    cipher = FileCipher(KEY)
    iv, ciphertext = cipher.encrypt(b"secret", "f1")
    with pytest.raises(DecryptionError):
        cipher.decrypt(ciphertext, iv, "f2")


def test_master_key_mode_round_trip():
    cipher = FileCipher(KEY, per_file_keys=False)
    iv, ciphertext = cipher.encrypt(b"payload", "f1")
    assert cipher.decrypt(ciphertext, iv, "f1") == b"payload"
    # A per-file cipher over the same master key derives a different key
    with pytest.raises(DecryptionError):
        FileCipher(KEY, per_file_keys=True).decrypt(ciphertext, iv, "f1")


def test_decode_master_key_accepts_hex_and_base64():
    assert decode_master_key(KEY.hex()) == KEY
    assert decode_master_key(base64.b64encode(KEY).decode()) == KEY


@pytest.mark.parametrize("encoded", ["", "not-a-key", base64.b64encode(b"short").decode()])
def test_decode_master_key_rejects_bad_values(encoded):
    with pytest.raises(KeyConfigurationError):
        decode_master_key(encoded)


def test_cipher_rejects_wrong_key_size():
    with pytest.raises(KeyConfigurationError):
        FileCipher(b"too short")
