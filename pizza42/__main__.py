import uvicorn

from .settings import settings

if __name__ == "__main__":
    uvicorn.run("pizza42.main:app", host=settings.api_host, port=settings.api_port)
