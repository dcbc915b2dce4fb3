from django.conf import settings
from django.core.validators import MaxValueValidator
from django.db import models


class Person(models.Model):
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['id']

    def __str__(self) -> str:
        return self.name


class Project(models.Model):
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    members = models.ManyToManyField(Person, blank=True, related_name='projects')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['id']

    def __str__(self) -> str:
        return self.name


class Task(models.Model):
    NOT_STARTED = 'not_started'
    IN_PROGRESS = 'in_progress'
    PAUSED = 'paused'
    COMPLETED = 'completed'

    STATUS_CHOICES = [
        (NOT_STARTED, 'Not started'),
        (IN_PROGRESS, 'In progress'),
        (PAUSED, 'Paused'),
        (COMPLETED, 'Completed'),
    ]

    # Statuses that count towards a person's workload
    ACTIVE_STATUSES = (NOT_STARTED, IN_PROGRESS, PAUSED)

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=NOT_STARTED)
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='tasks')
    assignees = models.ManyToManyField(Person, blank=True, related_name='tasks')
    completion_percentage = models.PositiveSmallIntegerField(
        default=0,
        validators=[MaxValueValidator(100)]
    )
    category = models.CharField(max_length=100, blank=True, default='')
    tags = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['id']
        permissions = [
            ('assign_task', 'Can assign tasks to people'),
        ]

    def __str__(self) -> str:
        return self.name

    @property
    def is_completed(self) -> bool:
        return self.status == self.COMPLETED

    def update_completion_percentage(self, save: bool = True) -> int:
        """Recompute completion from the task's steps (0 when it has none)."""
        total = self.steps.count()
        done = self.steps.filter(is_completed=True).count()
        self.completion_percentage = round(done / total * 100) if total else 0
        if save:
            self.save(update_fields=['completion_percentage', 'updated_at'])
        return self.completion_percentage


class TaskStep(models.Model):
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='steps')
    title = models.CharField(max_length=255)
    is_completed = models.BooleanField(default=False)
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['position', 'id']

    def __str__(self) -> str:
        return self.title

    def save(self, *args, **kwargs):
        super().save(*args, **kwargs)
        self.task.update_completion_percentage()

    def delete(self, *args, **kwargs):
        task = self.task
        result = super().delete(*args, **kwargs)
        task.update_completion_percentage()
        return result


class TaskDependency(models.Model):
    """`task` cannot be considered unblocked until `depends_on` is completed."""

    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='dependency_edges')
    depends_on = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='dependent_edges')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(fields=['task', 'depends_on'], name='unique_task_dependency'),
            models.CheckConstraint(condition=~models.Q(task=models.F('depends_on')), name='no_self_dependency'),
        ]

    def __str__(self) -> str:
        return f"{self.task_id} depends on {self.depends_on_id}"


class ActivityLog(models.Model):
    action = models.CharField(max_length=50)
    task = models.ForeignKey(Task, null=True, blank=True, on_delete=models.SET_NULL, related_name='activity')
    project = models.ForeignKey(Project, null=True, blank=True, on_delete=models.SET_NULL, related_name='activity')
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='task_activity'
    )
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self) -> str:
        return f"{self.action} ({self.task_id})"
