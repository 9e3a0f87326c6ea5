from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET

from .models import Location


@require_GET
def location_list(request):
    locations = Location.objects.filter(is_active=True)
    return JsonResponse({'locations': [loc.as_dict() for loc in locations]})


@require_GET
def location_detail(request, slug):
    """A location with the instructors who teach there."""
    location = get_object_or_404(Location, slug=slug, is_active=True)
    instructors = location.instructors.filter(
        is_active=True, deleted_at__isnull=True,
    ).prefetch_related('locations')
    data = location.as_dict()
    data['description'] = location.description
    data['instructors'] = [i.as_dict() for i in instructors]
    return JsonResponse({'location': data})
