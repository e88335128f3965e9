from django.urls import path
from . import views

urlpatterns = [
    # Study
    path('api/study/move/', views.study_move, name='study_move'),
    path('api/study/due/', views.due_moves, name='due_moves'),
]
