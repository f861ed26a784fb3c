import os

# Smoke checks run against the in-memory store
os.environ.setdefault("USE_MOCK_DB", "true")

from fastapi.testclient import TestClient  # noqa: E402
from app.main import app  # noqa: E402

client = TestClient(app)

print('ROOT:')
print(client.get('/').json())

print('\nHEALTH:')
print(client.get('/health').json())

print('\nDB HEALTH:')
resp = client.get('/health/db')
print(resp.status_code, resp.json())

print('\nUNAUTHENTICATED SUBMIT:')
resp = client.post('/reports', json={"issue_type": "Pothole", "block_id": "B1", "image_url": "https://example.com/a.jpg"})
print(resp.status_code, resp.json())
