import os
import sys
import pytest

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'webhook_gateway.settings')
os.environ.setdefault('USE_SQLITE_FOR_TESTS', 'true')


@pytest.fixture
def partner(db):
    """Return an active partner with a callback URL and signing secret."""
    from deliveries.models import Partner
    return Partner.objects.create(
        business_name='Acme Rentals',
        contact_email='ops@acme-rentals.example',
        callback_url='https://hooks.acme-rentals.example/verification',
        api_key='whsec_test_acme',
        is_active=True,
    )


@pytest.fixture
def inactive_partner(db):
    """Return a partner that has been deactivated."""
    from deliveries.models import Partner
    return Partner.objects.create(
        business_name='Dormant Ltd',
        contact_email='it@dormant.example',
        callback_url='https://dormant.example/hook',
        api_key='whsec_test_dormant',
        is_active=False,
    )


@pytest.fixture
def operator(db):
    """Return an active staff user who receives escalations."""
    from django.contrib.auth import get_user_model
    return get_user_model().objects.create_user(
        username='operator',
        email='operator@gateway.example',
        password='operator-password',
        is_staff=True,
    )


@pytest.fixture
def event_payload():
    """Return a verification outcome event as sent to partners."""
    return {
        'event': 'verification.completed',
        'verification_id': 'ver_8d1f2c',
        'status': 'approved',
        'customer': {
            'reference': 'cust-1042',
            'name': 'Jürgen Müller',
        },
        'checks': ['document', 'selfie', 'address'],
        'score': 0.97,
        'created_at': 1751013978,
    }
