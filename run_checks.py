from fastapi.testclient import TestClient

from app.core.settings import settings

settings.USE_MOCK_DB = True

from app.main import app  # noqa: E402

client = TestClient(app)

print('ROOT:')
print(client.get('/').json())

print('\nHEALTH:')
print(client.get('/health').json())

print('\nDB HEALTH:')
resp = client.get('/health/db')
print(resp.status_code)
print(resp.json())

print('\nSTATIONS:')
print(client.get('/stations').json())
