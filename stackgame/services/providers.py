import logging
import requests
from stackgame.errors import ProviderError

logger = logging.getLogger(__name__)

# OpenID Connect userinfo endpoints; the OAuth handshake itself happens in
# the provider's client SDK and we only verify the resulting access token.
PROVIDERS = {
    'google': {
        'userinfo_url': 'https://openidconnect.googleapis.com/v1/userinfo',
        'config_prefix': 'GOOGLE',
    },
    'linkedin': {
        'userinfo_url': 'https://api.linkedin.com/v2/userinfo',
        'config_prefix': 'LINKEDIN',
    },
}


def is_enabled(provider, config):
    settings = PROVIDERS.get(provider)
    if not settings:
        return False
    prefix = settings['config_prefix']
    return bool(config.get(f'{prefix}_CLIENT_ID') and config.get(f'{prefix}_CLIENT_SECRET'))


def enabled_providers(config):
    providers = {name: is_enabled(name, config) for name in PROVIDERS}
    providers['apple'] = False
    return providers


def fetch_profile(provider, access_token, config):
    """
    Verify an access token with the provider and return a normalised profile.

    Returns:
        dict: {'id', 'name', 'email', 'avatar'}

    Raises:
        ProviderError: if the provider is not configured, unreachable or
            rejects the token
    """
    if not is_enabled(provider, config):
        raise ProviderError(f"{provider} login is not configured", 404)
    if not access_token:
        raise ProviderError("accessToken is required", 400)

    url = PROVIDERS[provider]['userinfo_url']
    try:
        response = requests.get(
            url,
            headers={'Authorization': f'Bearer {access_token}'},
            timeout=config.get('PROVIDER_TIMEOUT', 10))
    except requests.RequestException as e:
        logger.error(f"Error contacting {provider} userinfo endpoint: {str(e)}")
        raise ProviderError(f"{provider} is unavailable", 503)

    if response.status_code != 200:
        logger.warning(f"{provider} rejected access token with status {response.status_code}")
        raise ProviderError(f"{provider} rejected the access token")

    data = response.json()
    profile = {
        'id': data.get('sub') or data.get('id'),
        'name': data.get('name') or data.get('given_name'),
        'email': data.get('email'),
        'avatar': data.get('picture'),
    }
    if not profile['id']:
        raise ProviderError(f"{provider} returned a profile without an id")
    return profile
