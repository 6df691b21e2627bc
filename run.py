"""
Mai Sushi ordering backend entry point.
"""
import os
import sys
import traceback

print("[MaiSushi] ========================================")
print("[MaiSushi] Starting Mai Sushi backend v1.0.0")
print("[MaiSushi] ========================================")

# Default to production for deployment
config_name = os.getenv('FLASK_ENV', 'production')
print(f"[MaiSushi] Config: {config_name}")
print(f"[MaiSushi] PORT: {os.getenv('PORT', 'not set')}")
print(f"[MaiSushi] DATABASE_URL: {'set' if os.getenv('DATABASE_URL') else 'NOT SET'}")
print(f"[MaiSushi] FIRESTORE_PROJECT_ID: {os.getenv('FIRESTORE_PROJECT_ID') or 'NOT SET'}")

try:
    from maisushi import create_app
    app = create_app(config_name)
    print(f"[MaiSushi] App created, routes: {len(list(app.url_map.iter_rules()))}")
except Exception as e:
    print(f"[MaiSushi] FATAL ERROR during app creation: {e}")
    traceback.print_exc()
    sys.exit(1)

if __name__ == '__main__':
    app.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=os.getenv('FLASK_ENV') == 'development'
    )
