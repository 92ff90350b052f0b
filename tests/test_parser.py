import pytest
from util import read_header
from niceheader import process_header, Parser
from niceheader.model import (Primitive, Named, TagRef, Pointer, Array, Param, FunctionPointer,
                              FunctionType, RecordDef, EnumDef, FunctionDecl, TypedefDef,
                              VariableDecl)


def load(relpath):
    return process_header(*read_header(__file__, relpath))


def parse(src):
    return Parser(src, 'test.h').parse()


def warning_kinds(table):
    return [d.kind for d in table.diagnostics if d.severity == 'warning']


#
# tester.h
#
def test_anonymous_and_nested_members():
    table = load('headers/tester.h')
    test1 = table.lookup_tag('Test1')
    assert isinstance(test1, RecordDef)
    assert [f.name for f in test1.fields] == ['x', 'tt', 't', 'w', 'Didido', 'bam', 'ba']

    didido = test1.field('Didido').type
    assert isinstance(didido, RecordDef)
    assert didido.kind == 'union' and didido.name is None
    assert [f.name for f in didido.fields] == ['zz', 'oo']

    bam = test1.field('bam').type
    assert isinstance(bam, RecordDef)
    assert bam.name == 'Di'
    assert bam.fields[0].name == 'z'

    ba = test1.field('ba').type
    assert isinstance(ba, EnumDef)
    assert [e.name for e in ba.enumerators] == ['Didi', 'Dodo']

    assert test1.field('tt').type == Pointer(TagRef('struct', 'Test1'))
    assert test1.field('t').type == TagRef('struct', 'Test2')
    assert test1.field('w').type == TagRef('enum', 'Wa')

    for name in ('Didido', 'Di', 'bam', 'ba'):
        assert name not in table.tags
        assert name not in table.typedefs


def test_anonymous_union_in_struct():
    table = load('headers/tester.h')
    vec2 = table.lookup_tag('ufbx_vec2')
    assert table.typedefs['ufbx_vec2'].type == TagRef('struct', 'ufbx_vec2')

    union = vec2.fields[0]
    assert union.name is None
    assert union.type.kind == 'union'

    xy, v = union.type.fields
    assert xy.name is None
    assert [f.name for f in xy.type.fields] == ['x', 'y']
    assert xy.type.fields[0].type == Named('ufbx_real')
    assert v.type == Array(Named('ufbx_real'), 2, '2')


def test_typedef_chains():
    table = load('headers/tester.h')
    assert table.typedefs['Test3'].type == TagRef('struct', 'Test1')
    assert table.typedefs['Test15'].type == Named('Test3')
    assert table.resolve(Named('Test15')) is table.lookup_tag('Test1')
    assert table.resolve(Named('undefined_t')) == Named('undefined_t')


def test_forward_typedef():
    table = load('headers/tester.h')
    assert table.typedefs['hello'].type == TagRef('struct', 'hello')
    hello = table.lookup_tag('hello')
    assert hello.is_complete
    assert [f.type for f in hello.fields] == [Named('ufbx_string'), Named('ufbx_dom_node_list'),
                                              Named('ufbx_dom_value_list')]


def test_enums():
    table = load('headers/tester.h')
    anon = table.typedefs['A_Typedeffed_Enum'].type
    assert isinstance(anon, EnumDef)
    assert [(e.name, e.value) for e in anon.enumerators] == [('Thing', 0), ('Something', 1),
                                                             ('Else', 2)]
    assert [e.name for e in table.lookup_tag('Wa').enumerators] == ['One', 'Two', 'Three']

    bool_enum = table.lookup_tag('bool')
    assert [(e.name, e.value_expr, e.value) for e in bool_enum.enumerators] == [
        ('false', '0', 0), ('true', '!false', 1)]
    assert table.enum_constants['Dodo'].value == 1


def test_enumerator_comments():
    table = load('headers/tester.h')
    container = table.typedefs['NvttContainer'].type
    assert [e.comment for e in container.enumerators] == ['something', 'something else']


def test_missing_semicolon_is_a_warning():
    table = load('headers/tester.h')
    assert 'MissingSemicolon' in warning_kinds(table)
    un = table.lookup_tag('Un')
    assert [f.name for f in un.fields] == ['x', 't', 'y']
    assert 'Test3' in table.typedefs
    assert un.diagnostics[0].kind == 'MissingSemicolon'


def test_missing_semicolon_before_typedef():
    table = parse("""
        union Un { int x; }
        typedef struct Test1 Test3;
        typedef Test3 Test15;
    """)
    assert list(table.typedefs) == ['Test3', 'Test15']
    assert table.typedefs['Test15'].type == Named('Test3')
    assert not table.variables
    assert [d.kind for d in table.diagnostics] == ['MissingSemicolon']


def test_function_pointer_fields():
    table = load('headers/tester.h')
    api = table.typedefs['My_API'].type
    hello, waaa = api.fields
    assert hello.type == FunctionPointer(Primitive('int'), [Param('data', Pointer(Primitive('void'))),
                                                            Param('len', Primitive('int'))])
    assert waaa.type.has_prototype is False


def test_callback_typedefs():
    table = load('headers/tester.h')
    trace = table.typedefs['TraceLogCallback']
    assert trace.type.params[2] == Param('args', Named('va_list'))
    assert trace.comment == 'Logging: Redirect trace log messages'

    load_data = table.typedefs['LoadFileDataCallback'].type
    assert isinstance(load_data, FunctionPointer)
    assert load_data.return_type == Pointer(Primitive('unsigned char'))
    assert load_data.params[1] == Param('dataSize', Pointer(Primitive('int')))


def test_functions():
    table = load('headers/tester.h')
    load_shader = table.functions['LoadShader']
    assert load_shader.return_type == Named('Shader')
    assert [p.name for p in load_shader.params] == ['vsFileName', 'fsFileName']
    assert load_shader.params[0].type == Pointer(Primitive('char', ['const']))

    assert table.functions['AFunc'].has_prototype is False

    varargs = table.functions['func_with_varargs']
    assert varargs.variadic
    assert varargs.params == [Param(None, Primitive('int')),
                              Param(None, Pointer(Primitive('char', ['const'])))]


def test_comments_pragmas_and_includes():
    table = load('headers/tester.h')
    assert table.includes == ['<stdarg.h>', '<stdbool.h>']
    assert [p.text for p in table.pragmas] == ['once']
    assert table.typedefs['ufbx_real'].pragmas[0].text == 'once'
    assert table.macros['LIGHTGRAY'].comment == 'Light Gray'
    assert table.macros['PI'].raw_text == '3.14159265358979323846f'


def test_entries_in_source_order():
    table = load('headers/tester.h')
    names = [getattr(e, 'name', None) for e in table.entries]
    assert names.index('ufbx_real') < names.index('ufbx_vec2') < names.index('Test1')
    assert names.index('PI') < names.index('ufbx_real')


#
# vtable.h
#
def test_function_type_typedefs():
    table = load('headers/vtable.h')
    assert isinstance(table.typedefs['myLogImpl'].type, FunctionPointer)
    impl2 = table.typedefs['myLogImpl2'].type
    assert isinstance(impl2, FunctionType)
    assert impl2.variadic
    assert impl2.params == [Param('fmt', Pointer(Primitive('char', ['const'])))]


def test_vtable():
    table = load('headers/vtable.h')
    fields = table.lookup_tag('MyVtable').fields
    assert [f.type for f in fields] == [
        Named('myLogImpl'),
        Pointer(Named('myLogImpl2')),
        Pointer(Named('myLogImpl')),
        Pointer(Named('myLogImpl2'), 2),
    ]
    assert table.functions['test4'].params[0].type == Pointer(Named('myLogImpl2'), 2)


def test_primitive_typedefs():
    table = load('headers/vtable.h')
    assert table.typedefs['Int64'].type == Primitive('signed long')
    assert table.typedefs['UInt64'].type == Primitive('unsigned long')
    assert table.typedefs['testType'].type == Array(Primitive('char'), 2, '2')


def test_prototypes():
    table = load('headers/vtable.h')
    no_proto = table.functions['functionNoProto']
    proto = table.functions['functionProto']
    assert no_proto.has_prototype is False
    assert proto.has_prototype is True
    assert no_proto.params == proto.params == []


def test_macro_in_declaration():
    table = load('headers/vtable.h')
    func = table.functions['test_macro_type']
    assert func.return_type == Primitive('unsigned char')
    assert func.params == [Param('value', Primitive('unsigned char'))]


def test_array_param():
    table = load('headers/vtable.h')
    param = table.functions['constArray'].params[0]
    assert param == Param('arr', Array(Primitive('char', ['const']), 2, '2'))


#
# Inline sources
#
def test_bitfields():
    table = parse("""
        #define WIDTH 4
        struct Flags {
            unsigned int a : 1;
            unsigned int b : WIDTH;
            unsigned : 13;
            int c : 2 * WIDTH, d;
        };
    """)
    fields = table.lookup_tag('Flags').fields
    assert [(f.name, f.bit_width, f.reserved) for f in fields] == [
        ('a', 1, False), ('b', 4, False), (None, 13, True), ('c', 8, False), ('d', None, False)]
    assert fields[2].type == Primitive('unsigned int')


def test_invalid_bitfield_width():
    table = parse("struct S { int a : -1; int b : NOT_DEFINED; };")
    fields = table.lookup_tag('S').fields
    assert [f.bit_width for f in fields] == [None, None]
    errors = [d for d in table.diagnostics if d.kind == 'InvalidBitfieldWidth']
    assert len(errors) == 2
    assert all(d.severity == 'error' for d in errors)
    assert [d.kind for d in fields[0].diagnostics] == ['InvalidBitfieldWidth']
    assert fields[1].diagnostics == [errors[1]]
    assert not table.lookup_tag('S').diagnostics


def test_arrays():
    table = parse("""
        #define N 4
        int grid[N][N * 2];
        char incomplete[];
        float unknown[SOME_SIZE];
    """)
    assert table.variables['grid'].type == Array(Array(Primitive('int'), 8, 'N * 2'), 4, 'N')
    assert table.variables['incomplete'].type == Array(Primitive('char'), None, None)
    assert table.variables['unknown'].type == Array(Primitive('float'), None, 'SOME_SIZE')


def test_pointer_to_function_pointer():
    table = parse("typedef int (**pfp)(void); typedef void (*arr[3])(int);")
    assert table.typedefs['pfp'].type == Pointer(FunctionPointer(Primitive('int')))
    assert table.typedefs['arr'].type == Array(FunctionPointer(Primitive('void'),
                                                               [Param(None, Primitive('int'))]),
                                               3, '3')


def test_pointer_qualifiers():
    table = parse("const char * const name; volatile int *const *pp;")
    assert table.variables['name'].type == Pointer(Primitive('char', ['const']), 1, ['const'])
    assert table.variables['pp'].type == Pointer(Primitive('int', ['volatile']), 2)


def test_multiple_typedef_names():
    table = parse("typedef struct { int x; } Point, *PointPtr;")
    point = table.typedefs['Point'].type
    assert isinstance(point, RecordDef)
    assert table.typedefs['PointPtr'].type == Pointer(point)
    assert not table.tags


def test_function_definition_is_skipped():
    table = parse("""
        #define BODY_MACRO {
        static inline int add(int a, int b) { if (a) { return a + b; } return BODY_MACRO; }
        int after;
    """)
    add = table.functions['add']
    assert add.is_definition
    assert add.storage == ('static', 'inline')
    assert 'after' in table.variables


def test_extern_c_and_attributes():
    table = parse("""
        #ifdef __cplusplus
        extern "C" {
        #endif
        __declspec(dllexport) int __stdcall f(int x) __attribute__((nonnull));
        extern int counter;
        struct __attribute__((packed)) Packed { char c; };
        #ifdef __cplusplus
        }
        #endif
    """)
    assert table.functions['f'].params == [Param('x', Primitive('int'))]
    assert table.variables['counter'].storage == ('extern',)
    assert table.lookup_tag('Packed').fields[0].name == 'c'


def test_initializers_are_skipped():
    table = parse("static const int table[] = { 1, 2, 3 }, n = 3;")
    assert table.variables['table'].type == Array(Primitive('int', ['const']), None, None)
    assert table.variables['n'].type == Primitive('int', ['const'])


def test_declaration_comments():
    table = parse("""
        /* A point */
        struct Point {
            int x; // The x coordinate
            /* The y coordinate */
            int y;
        };

        void f(void); // Does f
    """)
    point = table.lookup_tag('Point')
    assert point.comment == 'A point'
    assert [f.comment for f in point.fields] == ['The x coordinate', 'The y coordinate']
    assert table.functions['f'].comment == 'Does f'


def test_pragmas_attach_to_fields():
    table = parse("""
        #pragma pack(push, 1)
        struct Packed {
            char a;
            #pragma message("hi")
            int b;
        };
        #pragma pack(pop)
    """)
    packed = table.lookup_tag('Packed')
    assert [p.text for p in packed.pragmas] == ['pack(push, 1)']
    assert [p.text for p in packed.fields[1].pragmas] == ['message("hi")']
    assert packed.fields[0].pragmas == []


def test_forward_declaration():
    table = parse("struct Opaque; struct Opaque *make(void); enum Later;")
    opaque = table.lookup_tag('Opaque')
    assert opaque.fields is None
    assert not opaque.is_complete
    assert table.functions['make'].return_type == Pointer(TagRef('struct', 'Opaque'))
    assert isinstance(table.lookup_tag('Later'), EnumDef)


def test_forward_declaration_does_not_replace_definition():
    table = parse("struct S { int a; }; struct S;")
    assert table.lookup_tag('S').is_complete


def test_anonymous_enum_constants():
    table = parse("enum { FIRST = 5, SECOND, THIRD = FIRST * 2 };")
    assert [table.enum_constants[n].value for n in ('FIRST', 'SECOND', 'THIRD')] == [5, 6, 10]
    assert isinstance(table.entries[0], EnumDef)


def test_lookup_namespaces():
    table = parse("""
        #define MAX 10
        typedef struct thing { int a; } thing;
        int thing_count;
        int thing_get(void);
    """)
    assert isinstance(table.lookup('thing'), TypedefDef)
    assert isinstance(table.lookup_tag('thing'), RecordDef)
    assert isinstance(table.lookup('thing_count'), VariableDecl)
    assert isinstance(table.lookup('thing_get'), FunctionDecl)
    assert table.lookup('MAX').raw_text == '10'
    assert table.lookup('nothing') is None


def test_conditional_branches_all_read():
    table = parse("""
        #if defined(_WIN32)
        typedef unsigned long handle_t;
        #else
        typedef int handle_t;
        #endif
        #ifdef SOMETHING
        int only_if_something;
        #endif
    """)
    assert table.typedefs['handle_t'].type == Primitive('int')
    assert 'only_if_something' in table.variables


def test_empty_macro_keeps_comment():
    table = parse("""
        #define API
        /* Opens it */
        API int open_it(void);
    """)
    assert table.functions['open_it'].comment == 'Opens it'


def test_macro_expansion_error_is_recorded():
    table = parse("""
        #define PAIR(a, b) a b
        int PAIR(x);
    """)
    assert 'PAIR' in table.functions
    errors = [d for d in table.diagnostics if d.kind == 'MacroExpansionError']
    assert len(errors) == 1
    assert errors[0].location.line == 3
    assert table.functions['PAIR'].diagnostics == errors
    assert table.macros['PAIR'].diagnostics == errors


def test_diagnostics_belong_to_their_declaration():
    table = parse("""
        #define PAIR(a, b) a b
        int before;
        int PAIR(x);
        int after;
    """)
    assert not table.variables['before'].diagnostics
    assert not table.variables['after'].diagnostics
    assert len(table.functions['PAIR'].diagnostics) == 1


def test_error_directive_text():
    table = parse("""
        #ifndef CONFIG_H
        #error Don't include this directly, use "config.h" instead
        #endif
        int y;
    """)
    assert 'y' in table.variables
    assert not table.diagnostics
