from ledger_app import create_app
import os

app = create_app()

if __name__ == "__main__":
    port = int(os.environ.get('PORT', 5000))

    print("Starting School Fee Ledger...")
    print("=" * 60)
    print(f"Local Access:    http://127.0.0.1:{port}")
    print("=" * 60)

    app.run(
        host=os.environ.get('HOST', '127.0.0.1'),
        port=port,
        debug=app.config.get('DEBUG', False),
        threaded=True
    )
