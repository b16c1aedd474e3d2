# backend/wsgi.py
from supplytrack import create_app

app = create_app()

if __name__ == "__main__":
    # Threaded dev server; each request runs in its own app context
    app.run(threaded=True)
