from django.core.cache import cache
from django.db import DatabaseError, connections
from django.http import JsonResponse

from analyses.models import OrganizationSetting


def healthz(request):
    """Liveness plus a database round trip; also reports whether settings are seeded."""
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            db_ok = c.fetchone()[0] == 1
        seeded = OrganizationSetting.objects.exists()
    except DatabaseError as e:
        return JsonResponse({'ok': False, 'db': False, 'error': str(e)}, status=503)
    cache.set('healthz', 1, 5)
    return JsonResponse({'ok': db_ok, 'db': db_ok, 'cache': cache.get('healthz') == 1, 'settingsSeeded': seeded})
