import hashlib
import hmac

CHARGE_SUCCESS = 'charge.success'
SIGNATURE_HEADER = 'X-Paystack-Signature'


def compute_signature(payload, secret):
    """Paystack signs the raw request body with HMAC-SHA512 keyed by the secret key."""
    if isinstance(payload, str):
        payload = payload.encode('utf-8')
    return hmac.new(secret.encode('utf-8'), payload, hashlib.sha512).hexdigest()


def verify_signature(payload, signature, secret):
    if not signature or not secret:
        return False
    expected = compute_signature(payload, secret).encode('ascii')
    return hmac.compare_digest(expected, signature.strip().lower().encode('utf-8', 'replace'))


def get_reference(event):
    data = event.get('data')
    if not isinstance(data, dict):
        return None
    return data.get('reference') or None
