from taskgraph.models import Person, Project, Task, TaskDependency


def make_person(name):
    return Person.objects.create(name=name)


def make_project(name='Launch', members=()):
    project = Project.objects.create(name=name)
    if members:
        project.members.add(*members)
    return project


def make_task(project, name, status=Task.NOT_STARTED, assignees=(), **extra):
    task = Task.objects.create(project=project, name=name, status=status, **extra)
    if assignees:
        task.assignees.add(*assignees)
    return task


def depend(task, on):
    """`task` depends on `on`."""
    return TaskDependency.objects.create(task=task, depends_on=on)
