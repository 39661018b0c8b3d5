"""
Helpers that build throwaway certificates for the tests.
"""
from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID


def make_key():
    return ec.generate_private_key(ec.SECP256R1())


def make_name(common_name, **extra):
    """Build a name with a CN plus optional O/OU/C/ST/L/email attributes."""
    oids = {
        "C": NameOID.COUNTRY_NAME,
        "ST": NameOID.STATE_OR_PROVINCE_NAME,
        "L": NameOID.LOCALITY_NAME,
        "O": NameOID.ORGANIZATION_NAME,
        "OU": NameOID.ORGANIZATIONAL_UNIT_NAME,
        "email": NameOID.EMAIL_ADDRESS,
    }
    attrs = [x509.NameAttribute(oids[code], value) for code, value in extra.items()]
    if common_name is not None:
        attrs.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    return x509.Name(attrs)


def make_cert(subject, issuer=None, ca=None, serial=None, not_before=None, days=30, key=None):
    """Create a certificate.

    ``subject`` is a CN string or an x509.Name. ``issuer`` is a
    ``(certificate, key)`` tuple, an x509.Name signed with the subject key,
    or None for a self-signed certificate. ``ca`` of None leaves out the
    basic constraints extension. Returns ``(certificate, key)``.
    """
    key = key or make_key()
    subject_name = subject if isinstance(subject, x509.Name) else make_name(subject)

    if issuer is None:
        issuer_name, signing_key = subject_name, key
    elif isinstance(issuer, x509.Name):
        issuer_name, signing_key = issuer, key
    else:
        issuer_cert, signing_key = issuer
        issuer_name = issuer_cert.subject

    not_before = not_before or datetime.now(timezone.utc) - timedelta(days=1)
    builder = x509.CertificateBuilder().subject_name(
        subject_name
    ).issuer_name(
        issuer_name
    ).public_key(
        key.public_key()
    ).serial_number(
        serial if serial is not None else x509.random_serial_number()
    ).not_valid_before(
        not_before
    ).not_valid_after(
        not_before + timedelta(days=days)
    )
    if ca is not None:
        builder = builder.add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
    return builder.sign(signing_key, hashes.SHA256()), key


def make_chain():
    """Root CA, intermediate CA and leaf, as ``(certificate, key)`` tuples."""
    root = make_cert("Test Root CA", ca=True)
    intermediate = make_cert("Test Intermediate CA", issuer=root, ca=True)
    leaf = make_cert("www.example.com", issuer=intermediate, ca=False)
    return root, intermediate, leaf


def der(cert):
    return cert.public_bytes(serialization.Encoding.DER)


def pem(cert):
    return cert.public_bytes(serialization.Encoding.PEM)


def key_pem(key, password=None, traditional=False):
    encryption = (
        serialization.BestAvailableEncryption(password) if password else serialization.NoEncryption()
    )
    key_format = (
        serialization.PrivateFormat.TraditionalOpenSSL if traditional else serialization.PrivateFormat.PKCS8
    )
    return key.private_bytes(serialization.Encoding.PEM, key_format, encryption)
