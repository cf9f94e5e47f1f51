'''
Tests of `FixtureDescriptor` and `PropertyBag`.
'''

from pytest import raises

from isolated_fixture.descriptor import FixtureDescriptor, PropertyBag, PropertyNames
from isolated_fixture.types import RunState


class Widget:
    pass


def test_descriptor_defaults():
    d = FixtureDescriptor()
    assert d.arguments == ()
    assert d.type_args == ()
    assert d.test_name is None
    assert d.run_state is RunState.RUNNABLE
    assert d.skip_reason is None
    assert d.category is None
    assert d.categories == ()
    assert len(d.properties) == 0

def test_descriptor_none_arguments():
    d = FixtureDescriptor(None)
    assert d.arguments == (None,)

def test_category_round_trip():
    d = FixtureDescriptor()
    d.category = 'a,b,c'
    assert d.category == 'a,b,c'
    assert d.categories == ('a', 'b', 'c')

def test_category_appends():
    d = FixtureDescriptor(category='fast')
    d.category = 'db'
    assert d.category == 'fast,db'
    assert d.properties[PropertyNames.Category] == ['fast', 'db']

def test_category_single():
    d = FixtureDescriptor()
    d.category = 'slow'
    assert d.category == 'slow'

def test_category_strips_and_dedups():
    d = FixtureDescriptor(category=' a , b,,a ')
    d.category = 'b'
    assert d.categories == ('a', 'b')

def test_category_none_is_noop():
    d = FixtureDescriptor(category='a')
    d.category = None
    assert d.category == 'a'

def test_category_must_be_str():
    d = FixtureDescriptor()
    with raises(TypeError):
        d.category = 42 # type: ignore[assignment]
    assert d.category is None

def test_ignore_sets_state():
    d = FixtureDescriptor()
    d.ignore('broken')
    assert d.run_state is RunState.IGNORED
    assert d.skip_reason == 'broken'
    assert d.ignore_reason == 'broken'
    props = d.properties
    assert props.get(PropertyNames.SkipReason) == 'broken'
    assert props.get(PropertyNames.RunState) == 'Ignored'

def test_ignore_cleared_reverts():
    d = FixtureDescriptor(ignore='broken')
    assert d.run_state is RunState.IGNORED
    d.ignore_reason = None
    assert d.run_state is RunState.RUNNABLE
    assert d.skip_reason is None
    assert PropertyNames.SkipReason not in d.properties
    assert PropertyNames.RunState not in d.properties

def test_ignore_empty_reason_clears():
    d = FixtureDescriptor(ignore='broken')
    d.reason = ''
    assert d.run_state is RunState.RUNNABLE

def test_clearing_ignore_keeps_explicit():
    d = FixtureDescriptor(explicit=True)
    d.ignore(None)
    assert d.run_state is RunState.EXPLICIT

def test_explicit():
    d = FixtureDescriptor()
    d.explicit = True
    assert d.explicit
    assert d.run_state is RunState.EXPLICIT
    assert str(d.run_state) == 'Explicit'
    d.explicit = False
    assert d.run_state is RunState.RUNNABLE

def test_explicit_false_keeps_ignored():
    d = FixtureDescriptor(ignore='later')
    d.explicit = False
    assert d.run_state is RunState.IGNORED

def test_leading_types_are_type_args():
    d = FixtureDescriptor((int, str, 3, 'x'))
    assert d.type_args == (int, str)
    assert d.arguments == (3, 'x')

def test_explicit_type_args():
    d = FixtureDescriptor((int, 3), type_args=(str,))
    assert d.type_args == (str,)
    assert d.arguments == (int, 3)

def test_display_name():
    assert FixtureDescriptor().display_name('TestX') == 'TestX'
    assert FixtureDescriptor((2, 'a')).display_name('TestX') == "TestX(2,'a')"
    assert FixtureDescriptor((int, 2)).display_name('TestX') == 'TestX[int](2)'
    assert FixtureDescriptor((2,), name='Named').display_name('TestX') == 'Named'

def test_properties():
    d = FixtureDescriptor(description='Counts things',
                          author='someone',
                          test_of=Widget,
                          category='a,b')
    props = d.properties
    assert props.get(PropertyNames.Description) == 'Counts things'
    assert props.get(PropertyNames.Author) == 'someone'
    assert props.get(PropertyNames.TestOf) == f'{__name__}.Widget'
    assert list(props.items()) == [
        ('Description', 'Counts things'),
        ('Author', 'someone'),
        ('TestOf', f'{__name__}.Widget'),
        ('Category', 'a'),
        ('Category', 'b'),
    ]

def test_test_of_by_name():
    d = FixtureDescriptor(test_of='pkg.Thing')
    assert d.properties.get(PropertyNames.TestOf) == 'pkg.Thing'


def test_property_bag():
    bag = PropertyBag([('a', 1)])
    bag.add('a', 2)
    bag.add('b', 3)
    assert bag['a'] == [1, 2]
    assert bag.get('a') == 1
    assert bag['missing'] == []
    assert bag.get('missing') is None
    assert 'b' in bag
    assert bag.keys() == ['a', 'b']
    assert len(bag) == 2
    bag.set('a', 9)
    assert list(bag.items()) == [('a', 9), ('b', 3)]
    assert bag == PropertyBag([('a', 9), ('b', 3)])
